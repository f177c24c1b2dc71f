"""AttachmentHandler - Manages the pending document attached to the next query."""

from __future__ import annotations

from typing import Optional

from PySide6.QtCore import QObject, Signal

from core.exceptions import AttachmentValidationError
from core.models import PendingAttachment
from core.services.conversation_controller import ConversationController


class AttachmentHandler(QObject):
    """
    Manages the pending file attachment (PDF or DOCX) for the next message.

    The attachment itself lives in the controller, which consumes it when a
    turn is prepared; this handler validates selections and tells the UI
    whenever the pending file changes.
    """

    pending_attachment_changed = Signal(object)  # Optional[PendingAttachment]
    error_occurred = Signal(str)

    def __init__(
        self,
        controller: ConversationController,
        parent: Optional[QObject] = None,
    ):
        super().__init__(parent)
        self._controller = controller
        self._last_emitted: Optional[PendingAttachment] = None

    @property
    def pending_attachment(self) -> Optional[PendingAttachment]:
        """Get the file waiting to be sent, if any."""
        return self._controller.pending_attachment

    def has_attachment(self) -> bool:
        return self._controller.pending_attachment is not None

    def add_pending_attachment(self, file_path: str) -> bool:
        """
        Select a file for the next message, replacing any previous selection.

        Args:
            file_path: Path to the picked file

        Returns:
            True if the file was accepted, False otherwise
        """
        if not file_path:
            return False

        try:
            self._controller.select_attachment(file_path)
        except AttachmentValidationError as exc:
            self.error_occurred.emit(str(exc))
            return False

        self.sync()
        return True

    def clear_pending_attachment(self) -> None:
        """Drop the pending attachment."""
        self._controller.clear_attachment()
        self.sync()

    def sync(self) -> None:
        """Emit `pending_attachment_changed` if the controller's value moved."""
        current = self._controller.pending_attachment
        if current != self._last_emitted:
            self._last_emitted = current
            self.pending_attachment_changed.emit(current)
