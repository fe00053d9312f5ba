"""
Remote Models - Records returned by the remote chat history service.
"""

from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


class RemoteChatRecord(BaseModel):
    """A chat as stored remotely, keyed by its correlation id."""
    id: str
    name: str = ""
    user_id: Optional[str] = None
    parent_message_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None


class RemoteMessageRecord(BaseModel):
    """A single remote message belonging to a chat."""
    id: str
    chat_id: str
    role: str
    text: str = ""
    created_at: datetime
    updated_at: Optional[datetime] = None
    model_id: Optional[str] = None
    user_id: Optional[str] = None
    regenerated: bool = False

    @field_validator("created_at", "updated_at")
    @classmethod
    def assume_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        """The service omits the offset on some timestamps; those are UTC."""
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class RemoteChatMeta(BaseModel):
    """Chat metadata kept locally, keyed by correlation id in the chat state."""
    name: str = ""
    user_id: Optional[str] = None
    parent_message_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None


class SyncSnapshot(BaseModel):
    """Full remote state as returned by a fetch-all call."""
    chats: List[RemoteChatRecord] = Field(default_factory=list)
    messages: List[RemoteMessageRecord] = Field(default_factory=list)


class RenamedChat(BaseModel):
    """Response of the remote auto-rename call."""
    name: str
