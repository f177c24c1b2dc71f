# Assistant Chat - Core Package
"""
Core package for the assistant chat client.
This package contains the session store, the stream decoder and the turn
machinery, and can be used independently of the UI layer.
"""

from core.config import load_config
from core.models import ChatSnapshot, Message, MessageRole, Session
from core.types import AskRequest, AttachmentPayload, StreamRecord

__all__ = [
    "load_config",
    "ChatSnapshot",
    "Message",
    "MessageRole",
    "Session",
    "AskRequest",
    "AttachmentPayload",
    "StreamRecord",
]
