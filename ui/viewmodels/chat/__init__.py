"""Chat subsystem - Qt adapters around the conversation controller."""

from .attachment_handler import AttachmentHandler
from .turn_worker import TurnWorker

__all__ = [
    "AttachmentHandler",
    "TurnWorker",
]
