from __future__ import annotations

import json
import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Union

from disputedesk.services.llm_provider import Backend

logger = logging.getLogger(__name__)

# Checked in order; the first non-empty string wins.
TEXT_FIELDS = ("response", "output_text", "text", "content")


# =========================
# Reply shapes
# =========================
@dataclass(frozen=True)
class TextReply:
    text: str


@dataclass(frozen=True)
class FieldReply:
    field: str
    text: str


@dataclass(frozen=True)
class RawReply:
    payload: Any

    @property
    def text(self) -> str:
        return json.dumps(self.payload, ensure_ascii=False, default=str)


ReplyShape = Union[TextReply, FieldReply, RawReply]


def _get(obj: Any, name: str) -> Any:
    if isinstance(obj, Mapping):
        return obj.get(name)
    return getattr(obj, name, None)


def _nonempty_str(v: Any) -> Optional[str]:
    return v if isinstance(v, str) and v else None


def classify_reply(raw: Any) -> ReplyShape:
    if isinstance(raw, str):
        return TextReply(raw) if raw else RawReply(raw)
    if raw is None:
        return RawReply(raw)
    for name in TEXT_FIELDS:
        text = _nonempty_str(_get(raw, name))
        if text:
            return FieldReply(name, text)
    message = _get(raw, "message")
    if message is not None and not isinstance(message, str):
        text = _nonempty_str(_get(message, "content"))
        if text:
            return FieldReply("message.content", text)
    return RawReply(raw)


# =========================
# Result
# =========================
@dataclass(frozen=True)
class GatewayOk:
    text: str
    shape: str = "text"


@dataclass(frozen=True)
class GatewayError:
    kind: str        # "backend_unavailable" | "timeout"
    detail: str


GatewayResult = Union[GatewayOk, GatewayError]


def fallback_reply(user_text: str) -> str:
    return (
        "AI call failed in this environment. The model backend could not be reached, "
        "so no generated reply is available.\n"
        "Check MODEL_PROVIDER and the provider settings to get real AI responses.\n\n"
        "Echoing your last message so you can still test the flow:\n"
        + user_text
    )


class ModelGateway:
    def __init__(self, backend: Backend, model_id: str, timeout_seconds: float = 0):
        self.backend = backend
        self.model_id = model_id
        self.timeout_seconds = timeout_seconds

    async def generate_reply(self, messages: List[Dict[str, str]]) -> GatewayResult:
        try:
            call = self.backend(self.model_id, {"messages": messages})
            if self.timeout_seconds and self.timeout_seconds > 0:
                raw = await asyncio.wait_for(call, timeout=self.timeout_seconds)
            else:
                raw = await call
        except asyncio.TimeoutError:
            logger.warning("Model call to %s timed out after %.1fs", self.model_id, self.timeout_seconds)
            return GatewayError("timeout", f"no reply within {self.timeout_seconds}s")
        except Exception as e:
            logger.warning("Model call to %s failed: %s", self.model_id, e, exc_info=True)
            return GatewayError("backend_unavailable", str(e) or type(e).__name__)

        shape = classify_reply(raw)
        if isinstance(shape, RawReply):
            logger.warning("Unrecognized reply shape from %s (%s); serializing raw", self.model_id, type(raw).__name__)
            return GatewayOk(shape.text, shape="raw")
        if isinstance(shape, FieldReply):
            return GatewayOk(shape.text, shape=shape.field)
        return GatewayOk(shape.text)
