from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable, Optional

from disputedesk.models.message import DisputeDigest, SessionState

# Placeholder heuristic: the digest restates the latest user message. It does not
# try to understand the dispute; swap in an extractor later without changing the
# contract (same content for the same transcript, timestamps never go backwards).

SUMMARY_PREFIX = "Latest dispute description: "
SUMMARY_MAX_LEN = 280
TRUNCATION_MARK = "..."

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def iso(dt: datetime) -> str:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_iso(s: Optional[str]) -> Optional[datetime]:
    if not s:
        return None
    try:
        dt = datetime.fromisoformat(s.replace("Z", "+00:00"))
    except ValueError:
        return None
    return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)


def summary_text(content: str) -> str:
    base = SUMMARY_PREFIX + content
    if len(base) <= SUMMARY_MAX_LEN:
        return base
    return base[: SUMMARY_MAX_LEN - len(TRUNCATION_MARK)] + TRUNCATION_MARK


def summarize(state: SessionState, clock: Clock = utc_now) -> DisputeDigest:
    prior = state.dispute
    last_user = next((m for m in reversed(state.messages) if m.role == "user"), None)
    if last_user is None:
        return prior.model_copy()

    now = clock()
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    before = parse_iso(prior.last_updated)
    if before is not None and before > now:
        now = before

    return DisputeDigest(
        summary=summary_text(last_user.content),
        last_updated=iso(now),
        last_user_message=last_user.content,
    )
