"""Chat ViewModel - Qt facade over the conversation controller."""

import logging
from typing import Callable, Optional
from uuid import uuid4

from PySide6.QtCore import QObject, Signal, Slot

from core.client import AssistantClient
from core.exceptions import EmptyQueryError, TransportError, TurnInProgressError
from core.models import ChatSnapshot, Message, SessionSummary
from core.services.attachment_encoder import encode_attachment
from core.services.conversation_controller import (
    AttachmentEncoder,
    ConversationController,
    PreparedTurn,
)
from core.types import StreamRecord
from ui.viewmodels.chat.attachment_handler import AttachmentHandler
from ui.viewmodels.chat.turn_worker import TurnWorker

logger = logging.getLogger(__name__)


class ChatViewModel(QObject):
    """ViewModel for the chat interface.

    Sessions, messages and the streaming preview live in the controller on
    this object's thread. Each submitted query runs on a one-shot
    `TurnWorker`; its records come back through queued signals and are
    applied here, so the store is only ever mutated from one thread.

    Signals:
        sessions_changed(object): Sidebar entries (tuple of SessionSummary)
        active_session_changed(str): Active session ID ("" when none)
        messages_changed(object): Messages of the active session
        streaming_preview_changed(str): Partial answer of the active session
        is_loading_changed(bool): Whether the active session has a turn in flight
        status_changed(str): Short status text
        error_occurred(str): User-facing error (e.g. rejected attachment)
        pending_attachment_changed(object): Pending attachment or None
    """

    sessions_changed = Signal(object)
    active_session_changed = Signal(str)
    messages_changed = Signal(object)
    streaming_preview_changed = Signal(str)
    is_loading_changed = Signal(bool)
    status_changed = Signal(str)
    error_occurred = Signal(str)
    pending_attachment_changed = Signal(object)

    def __init__(
        self,
        controller: Optional[ConversationController] = None,
        client_factory: Callable[[], AssistantClient] = AssistantClient,
        encoder: AttachmentEncoder = encode_attachment,
        parent: Optional[QObject] = None,
    ):
        super().__init__(parent)
        self._controller = controller or ConversationController(encoder=encoder)
        self._client_factory = client_factory
        self._encoder = encoder

        self._workers: dict[str, tuple[TurnWorker, PreparedTurn]] = {}
        self._snapshot: ChatSnapshot = self._controller.snapshot()

        self._attachments = AttachmentHandler(self._controller, parent=self)
        self._attachments.pending_attachment_changed.connect(self.pending_attachment_changed)
        self._attachments.error_occurred.connect(self.error_occurred)

        self._controller.subscribe(self._on_snapshot)

    @property
    def controller(self) -> ConversationController:
        return self._controller

    @property
    def attachments(self) -> AttachmentHandler:
        return self._attachments

    @property
    def snapshot(self) -> ChatSnapshot:
        return self._snapshot

    @property
    def sessions(self) -> tuple[SessionSummary, ...]:
        return self._snapshot.sessions

    @property
    def active_session_id(self) -> Optional[str]:
        return self._snapshot.active_session_id

    @property
    def messages(self) -> tuple[Message, ...]:
        return self._snapshot.messages

    @property
    def streaming_preview(self) -> str:
        return self._snapshot.streaming_preview

    @property
    def is_loading(self) -> bool:
        return self._snapshot.in_flight

    @Slot()
    def ensure_session(self) -> None:
        """Create the first default session when there is none."""
        if len(self._controller.store) == 0:
            self._controller.create_session()

    @Slot()
    def create_session(self) -> None:
        self._controller.create_session()

    @Slot(str)
    def select_session(self, session_id: str) -> None:
        self._controller.select_session(session_id)

    @Slot(str)
    def select_attachment(self, file_path: str) -> bool:
        return self._attachments.add_pending_attachment(file_path)

    @Slot()
    def clear_attachment(self) -> None:
        self._attachments.clear_pending_attachment()

    @Slot(str)
    def send_message(self, content: str) -> bool:
        """Send a user message and stream the answer.

        Args:
            content: The user's message content

        Returns:
            True if a turn was started
        """
        try:
            prepared = self._controller.prepare_turn(content)
        except EmptyQueryError:
            return False
        except TurnInProgressError as exc:
            logger.info("Ignoring submission: %s", exc)
            return False

        self.status_changed.emit("Processing...")

        run_token = str(uuid4())
        worker = TurnWorker(prepared, run_token, self._client_factory, self._encoder)
        worker.record_received.connect(self._on_record_received)
        worker.completed.connect(self._on_stream_completed)
        worker.error.connect(self._on_stream_error)
        worker.cancelled.connect(self._on_stream_cancelled)
        worker.finished.connect(self._cleanup_worker)
        self._workers[run_token] = (worker, prepared)
        worker.start()
        return True

    @Slot()
    def cancel_generation(self) -> None:
        """Abandon the active session's turn and release its stream."""
        if self._controller.cancel_turn():
            self.status_changed.emit("Cancelled")

    def shutdown(self, timeout_ms: int = 5000) -> None:
        """Cancel every live turn and wait for the workers to stop."""
        for worker, prepared in list(self._workers.values()):
            self._controller.cancel_turn(prepared.session_id)
            prepared.cancel_token.cancel()
            worker.wait(timeout_ms)

    def _prepared_for(self, run_token: str) -> Optional[PreparedTurn]:
        entry = self._workers.get(run_token)
        return entry[1] if entry else None

    def _on_record_received(self, record: StreamRecord, run_token: str) -> None:
        prepared = self._prepared_for(run_token)
        if prepared is None:
            return
        if prepared.reconciler.apply(record):
            self.status_changed.emit("Ready")

    def _on_stream_completed(self, run_token: str) -> None:
        prepared = self._prepared_for(run_token)
        if prepared is None:
            return
        prepared.reconciler.finish_stream()
        self._controller.release_turn(prepared)

    def _on_stream_error(self, error: str, run_token: str) -> None:
        prepared = self._prepared_for(run_token)
        if prepared is None:
            return
        prepared.reconciler.fail(TransportError(error))
        self._controller.release_turn(prepared)
        self.status_changed.emit("Error")

    def _on_stream_cancelled(self, run_token: str) -> None:
        prepared = self._prepared_for(run_token)
        if prepared is None:
            return
        prepared.reconciler.cancel()
        self._controller.release_turn(prepared)

    def _cleanup_worker(self) -> None:
        """Drop a worker once its thread has stopped; workers are one-shot."""
        worker = self.sender()
        run_token = getattr(worker, "run_token", None)
        entry = self._workers.pop(run_token, None) if run_token else None
        if entry is not None:
            entry[0].deleteLater()

    def _on_snapshot(self, snapshot: ChatSnapshot) -> None:
        previous, self._snapshot = self._snapshot, snapshot

        if snapshot.sessions != previous.sessions:
            self.sessions_changed.emit(snapshot.sessions)
        if snapshot.active_session_id != previous.active_session_id:
            self.active_session_changed.emit(snapshot.active_session_id or "")
        if snapshot.messages != previous.messages:
            self.messages_changed.emit(snapshot.messages)
        if snapshot.streaming_preview != previous.streaming_preview:
            self.streaming_preview_changed.emit(snapshot.streaming_preview)
        if snapshot.in_flight != previous.in_flight:
            self.is_loading_changed.emit(snapshot.in_flight)

        self._attachments.sync()
