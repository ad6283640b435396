from __future__ import annotations

import re
import uuid
import logging
from dataclasses import dataclass
from typing import Callable, Optional

from disputedesk.memory import transcript
from disputedesk.memory.store import SessionStore
from disputedesk.memory.summarizer import Clock, summarize, utc_now
from disputedesk.models.message import ChatReply, SessionState
from disputedesk.services.gateway import GatewayError, ModelGateway, fallback_reply

logger = logging.getLogger(__name__)

_TOKEN_RX = re.compile(r"^[A-Za-z0-9_-]{1,128}$")


def new_session_id() -> str:
    return str(uuid.uuid4())


@dataclass(frozen=True)
class SessionIdentity:
    session_id: str
    minted: bool  # caller must hand the id back to the client


class SessionResolver:
    """Maps a client-presented token to a session id, minting one when absent or unusable."""

    def __init__(self, new_id: Callable[[], str] = new_session_id):
        self._new_id = new_id

    @staticmethod
    def canonical(token: Optional[str]) -> Optional[str]:
        token = (token or "").strip()
        return token if _TOKEN_RX.match(token) else None

    def resolve(self, token: Optional[str]) -> SessionIdentity:
        sid = self.canonical(token)
        if sid:
            return SessionIdentity(sid, minted=False)
        sid = self._new_id()
        if not _TOKEN_RX.match(sid):
            raise ValueError(f"id generator produced an unusable session id: {sid!r}")
        logger.info("Minted new session %s", sid)
        return SessionIdentity(sid, minted=True)


class SessionRouter:
    """Runs chat turns: one turn at a time per session, sessions independent of each other."""

    def __init__(
        self,
        store: SessionStore,
        gateway: ModelGateway,
        clock: Clock = utc_now,
        recent_messages: int = transcript.RECENT_VIEW_SIZE,
        replay_tokens: int = 0,
    ):
        self.store = store
        self.gateway = gateway
        self.clock = clock
        self.recent_messages = recent_messages
        self.replay_tokens = replay_tokens

    async def chat_turn(self, session_id: str, text: str) -> ChatReply:
        # validated before taking the session lock
        transcript.require_text(text)

        async with self.store.exclusive(session_id):
            state = await self.store.load_or_create(session_id)
            state = transcript.append_user(state, text)

            result = await self.gateway.generate_reply(
                transcript.model_messages(state, budget_tokens=self.replay_tokens)
            )
            if isinstance(result, GatewayError):
                logger.warning("Session %s: backend %s (%s); replying with fallback", session_id, result.kind, result.detail)
                reply = fallback_reply(text)
            else:
                reply = result.text

            state = transcript.append_assistant(state, reply)
            state = state.model_copy(update={"dispute": summarize(state, self.clock)})
            await self.store.save(session_id, state)

        logger.debug("Session %s: turn done, %d messages", session_id, len(state.messages))
        return ChatReply(
            reply=reply,
            dispute=state.dispute,
            messages=transcript.recent_view(state, self.recent_messages),
        )

    async def get_state(self, session_id: Optional[str]) -> Optional[SessionState]:
        if not session_id:
            return None
        async with self.store.exclusive(session_id):
            return await self.store.load(session_id)
