from __future__ import annotations

import json
import logging
from functools import lru_cache
from pathlib import Path
from typing import Any, Optional

from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse, JSONResponse

from disputedesk.errors import ValidationError
from disputedesk.services.session_router import SessionResolver, SessionRouter
from disputedesk.settings import Settings

logger = logging.getLogger(__name__)

router = APIRouter()

_STATIC = Path(__file__).parent / "static"


# =========================
# Helpers
# =========================
@lru_cache(maxsize=1)
def _page_html() -> str:
    return (_STATIC / "index.html").read_text(encoding="utf-8")


def _sessions(request: Request) -> SessionRouter:
    return request.app.state.sessions


def _resolver(request: Request) -> SessionResolver:
    return request.app.state.resolver


def _settings(request: Request) -> Settings:
    return request.app.state.settings


def _message_from(body: Any) -> str:
    value = body.get("message") if isinstance(body, dict) else None
    return str(value) if value else ""


async def _read_json(request: Request) -> Any:
    raw = await request.body()
    try:
        return json.loads(raw)
    except (ValueError, UnicodeDecodeError):
        raise ValidationError("Invalid JSON") from None


# =========================
# Endpoints
# =========================
@router.get("/", response_class=HTMLResponse)
def index():
    return HTMLResponse(_page_html())


@router.get("/health")
def health(request: Request):
    s = _settings(request)
    return {"ok": True, "provider": s.provider, "model": s.model_id, "store": s.store}


@router.post("/api/chat")
async def chat(request: Request):
    body = await _read_json(request)
    message = _message_from(body)
    if not message.strip():
        raise ValidationError("Message is required")

    cookie = _settings(request).session_cookie
    identity = _resolver(request).resolve(request.cookies.get(cookie))
    reply = await _sessions(request).chat_turn(identity.session_id, message)

    response = JSONResponse(reply.model_dump(by_alias=True))
    if identity.minted:
        response.set_cookie(cookie, identity.session_id, path="/", samesite="lax")
    return response


@router.get("/state")
async def session_state(request: Request):
    token: Optional[str] = request.cookies.get(_settings(request).session_cookie)
    sid = SessionResolver.canonical(token)
    state = await _sessions(request).get_state(sid)
    return JSONResponse(state.to_record() if state is not None else None)
