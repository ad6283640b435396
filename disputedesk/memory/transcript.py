from __future__ import annotations

from typing import Dict, List

from disputedesk.errors import ValidationError
from disputedesk.models.message import Message, SessionState

SYSTEM_DIRECTIVE = " ".join([
    "You are an AI assistant that helps users describe and track bank and credit card transaction disputes.",
    "Ask clear follow-up questions when needed, help the user organize the important facts (merchant, date, amount, what went wrong),",
    "and draft concise, polite dispute explanations.",
    "Keep answers practical, user-friendly, and avoid giving legal or financial advice.",
    "When appropriate, summarize the dispute details you have so far in 3–5 bullet points.",
])

RECENT_VIEW_SIZE = 20


def _approx_tokens(s: str) -> int:
    return max(1, len(s) // 4)


def _append(state: SessionState, role: str, content: str) -> SessionState:
    msgs = list(state.messages) + [Message(role=role, content=content)]
    return state.model_copy(update={"messages": msgs})


def require_text(text: str) -> str:
    if not (text or "").strip():
        raise ValidationError("Message is required")
    return text


def append_user(state: SessionState, text: str) -> SessionState:
    require_text(text)
    return _append(state, "user", text)


def append_assistant(state: SessionState, text: str) -> SessionState:
    return _append(state, "assistant", text)


def recent_view(state: SessionState, n: int = RECENT_VIEW_SIZE) -> List[Message]:
    if n <= 0:
        return []
    return list(state.messages[-n:])


def model_messages(state: SessionState, budget_tokens: int = 0) -> List[Dict[str, str]]:
    """System directive + persisted history, in the shape the backend expects.

    With budget_tokens > 0 the oldest history is left out of the replay (never out
    of the stored transcript) until it fits; the newest message is always sent.
    """
    history = [{"role": m.role, "content": m.content} for m in state.messages]
    if budget_tokens > 0:
        while len(history) > 1 and sum(_approx_tokens(m["content"]) + 10 for m in history) > budget_tokens:
            history.pop(0)
    return [{"role": "system", "content": SYSTEM_DIRECTIVE}] + history
