"""Domain models for conversation state."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Optional
import uuid


class MessageRole(str, Enum):
    """Role of a message sender."""

    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True)
class Message:
    """A single message in a session."""

    id: str
    content: str
    role: MessageRole
    timestamp: datetime = field(default_factory=datetime.now)

    @classmethod
    def create(cls, role: MessageRole, content: str) -> "Message":
        """Create a message with an auto-generated ID."""
        return cls(
            id=str(uuid.uuid4()),
            content=content,
            role=role,
            timestamp=datetime.now(),
        )


@dataclass(frozen=True)
class Session:
    """A conversation thread.

    Sessions are immutable values: the store replaces a session whenever a
    message is appended or the identifier changes.
    """

    id: str
    name: str
    messages: tuple[Message, ...] = ()
    created_at: datetime = field(default_factory=datetime.now)

    @classmethod
    def create(cls, name: str) -> "Session":
        """Create a new session with an auto-generated ID."""
        return cls(
            id=str(uuid.uuid4()),
            name=name,
            messages=(),
            created_at=datetime.now(),
        )

    @property
    def message_count(self) -> int:
        return len(self.messages)

    def with_message(self, message: Message) -> "Session":
        """Return a copy with the message appended."""
        return replace(self, messages=self.messages + (message,))

    def with_id(self, session_id: str) -> "Session":
        """Return a copy carrying a different identifier."""
        return replace(self, id=session_id)


@dataclass(frozen=True)
class PendingAttachment:
    """A user-selected file waiting to be sent with the next message."""

    path: str
    extension: str

    @property
    def filename(self) -> str:
        return Path(self.path).name


@dataclass(frozen=True)
class SessionSummary:
    """Sidebar entry for a session."""

    id: str
    name: str
    message_count: int


@dataclass(frozen=True)
class ChatSnapshot:
    """Everything the rendering surface needs to draw the chat."""

    sessions: tuple[SessionSummary, ...]
    active_session_id: Optional[str]
    messages: tuple[Message, ...]
    streaming_preview: str = ""
    in_flight: bool = False
