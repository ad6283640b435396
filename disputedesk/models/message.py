from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

Role = Literal["user", "assistant", "system"]


class Message(BaseModel):
    model_config = ConfigDict(frozen=True)

    role: Role
    content: str


class DisputeDigest(BaseModel):
    """Rolling summary of what the user says is wrong. Derived from the transcript only."""

    model_config = ConfigDict(populate_by_name=True)

    summary: Optional[str] = None
    last_updated: Optional[str] = Field(default=None, alias="lastUpdated")
    last_user_message: Optional[str] = Field(default=None, alias="lastUserMessage")


class SessionState(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    messages: List[Message] = Field(default_factory=list)
    dispute: DisputeDigest = Field(default_factory=DisputeDigest)

    def to_record(self) -> dict:
        return self.model_dump(by_alias=True)


class ChatReply(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    reply: str
    dispute: DisputeDigest
    messages: List[Message]
