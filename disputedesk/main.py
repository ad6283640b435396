from __future__ import annotations

import os
import logging
from contextlib import asynccontextmanager
from typing import Callable, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from disputedesk.errors import DisputeDeskError, StorageFailure
from disputedesk.memory.store import SessionStore, build_store
from disputedesk.memory.summarizer import Clock, utc_now
from disputedesk.router import router
from disputedesk.services.gateway import ModelGateway
from disputedesk.services.llm_provider import Backend, make_backend
from disputedesk.services.session_router import SessionResolver, SessionRouter, new_session_id
from disputedesk.settings import Settings, get_settings

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s | %(name)-25s | %(levelname)-7s | %(message)s",
        datefmt="%H:%M:%S",
    )


async def _handle_app_error(request: Request, exc: DisputeDeskError) -> JSONResponse:
    if isinstance(exc, StorageFailure):
        logger.error("Turn failed on %s: %s", request.url.path, exc.message)
    return JSONResponse({"error": exc.message}, status_code=exc.status_code)


def create_app(
    store: Optional[SessionStore] = None,
    backend: Optional[Backend] = None,
    clock: Clock = utc_now,
    new_id: Callable[[], str] = new_session_id,
    settings: Optional[Settings] = None,
) -> FastAPI:
    s = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Dispute Desk starting: provider=%s model=%s store=%s", s.provider, s.model_id, s.store)
        yield
        logger.info("Dispute Desk shutting down")

    app = FastAPI(title="Dispute Desk", version="0.1.0", lifespan=lifespan)
    app.state.settings = s
    app.state.resolver = SessionResolver(new_id)
    app.state.sessions = SessionRouter(
        store=store or build_store(s.store, s.data_dir),
        gateway=ModelGateway(backend or make_backend(s), s.model_id, timeout_seconds=s.timeout_seconds),
        clock=clock,
        recent_messages=s.recent_messages,
        replay_tokens=s.replay_tokens,
    )
    app.add_exception_handler(DisputeDeskError, _handle_app_error)
    app.include_router(router)
    return app


def run() -> None:
    import uvicorn
    configure_logging(get_settings().log_level)
    uvicorn.run("disputedesk.main:create_app", factory=True, host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
