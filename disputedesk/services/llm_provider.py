# disputedesk/services/llm_provider.py
from __future__ import annotations

import os
import asyncio
from functools import lru_cache
from typing import Any, Awaitable, Callable, Dict

import ollama
from openai import AsyncOpenAI

from disputedesk.errors import BackendUnavailable
from disputedesk.settings import Settings, get_settings

# A backend takes (model_id, {"messages": [...]}) and returns whatever the provider
# gives back: plain text, a mapping, or an SDK object. The gateway normalizes it.
Backend = Callable[[str, Dict[str, Any]], Awaitable[Any]]

_OLLAMA_DEFAULTS = {
    "keep_alive": os.getenv("DISPUTE_KEEP_ALIVE", "30m"),
    "num_thread": os.cpu_count() or 4,
    "num_ctx": int(os.getenv("DISPUTE_NUM_CTX", "4096")),
    "num_predict": int(os.getenv("DISPUTE_NUM_PREDICT", "512")),
    "top_k": int(os.getenv("DISPUTE_TOP_K", "30")),
    "top_p": float(os.getenv("DISPUTE_TOP_P", "0.9")),
}


@lru_cache(maxsize=4)
def _openai_client(base: str, key: str, headers: tuple) -> AsyncOpenAI:
    # built on first use so importing the service never needs credentials
    return AsyncOpenAI(base_url=base or None, api_key=key or None, default_headers=dict(headers) or None)


def make_backend(settings: Settings | None = None) -> Backend:
    s = settings or get_settings()

    if s.provider == "openai_compatible":
        async def run_openai(model_id: str, payload: Dict[str, Any]) -> Any:
            client = _openai_client(s.api_base, s.api_key, tuple(sorted(s.extra_headers.items())))
            rsp = await client.chat.completions.create(
                model=model_id, messages=payload["messages"], temperature=s.temperature,
            )
            return {"response": rsp.choices[0].message.content or ""}
        return run_openai

    if s.provider == "ollama":
        async def run_ollama(model_id: str, payload: Dict[str, Any]) -> Any:
            opts = dict(_OLLAMA_DEFAULTS, temperature=s.temperature)
            def _call():
                # shape: {"message": {"content": "..."}}
                return ollama.chat(model=model_id, messages=payload["messages"], options=opts)
            return await asyncio.to_thread(_call)
        return run_ollama

    if s.provider == "none":
        async def run_unbound(model_id: str, payload: Dict[str, Any]) -> Any:
            raise BackendUnavailable("No model backend is bound in this environment (MODEL_PROVIDER=none).")
        return run_unbound

    raise ValueError(f"Unknown MODEL_PROVIDER: {s.provider!r}")
