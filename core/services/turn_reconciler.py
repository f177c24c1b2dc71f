"""TurnReconciler - Lifecycle of one request/response exchange."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from core.constants import FAILURE_NOTICE
from core.exceptions import (
    RekeyConflictError,
    SessionNotFoundError,
    StreamTruncatedError,
    TurnCancelledError,
)
from core.models import Message, MessageRole
from core.store.session_store import SessionStore
from core.types import StreamRecord

logger = logging.getLogger(__name__)


class TurnState(str, Enum):
    """Lifecycle states of a turn."""

    IDLE = "idle"
    SENDING = "sending"
    STREAMING = "streaming"
    COMMITTING = "committing"
    DONE = "done"
    FAILED = "failed"


TERMINAL_STATES = (TurnState.DONE, TurnState.FAILED)


@dataclass
class ConversationTurn:
    """Transient state of one exchange."""

    origin_session_id: str
    partial_answer: str = ""
    captured_session_id: Optional[str] = None
    completed: bool = False

    @property
    def final_session_id(self) -> str:
        return self.captured_session_id or self.origin_session_id


class TurnReconciler:
    """Accumulates a streamed answer and commits it to the store exactly once.

    The server may announce the session identifier in any record; the first
    non-empty value wins and later ones are ignored. The server must not send
    a second, different identifier within one turn.

    Args:
        store: Store that receives the committed message
        origin_session_id: Session identifier valid when the request was sent
        on_preview: Called with the partial answer after each fragment and
            with "" once the turn ends
    """

    def __init__(
        self,
        store: SessionStore,
        origin_session_id: str,
        on_preview: Optional[Callable[[str], None]] = None,
    ):
        self._store = store
        self._turn = ConversationTurn(origin_session_id=origin_session_id)
        self._state = TurnState.IDLE
        self._on_preview = on_preview
        self._error: Optional[Exception] = None

    @property
    def state(self) -> TurnState:
        return self._state

    @property
    def turn(self) -> ConversationTurn:
        return self._turn

    @property
    def origin_session_id(self) -> str:
        return self._turn.origin_session_id

    @property
    def preview(self) -> str:
        """Partial answer while streaming, empty otherwise."""
        if self._state in (TurnState.SENDING, TurnState.STREAMING):
            return self._turn.partial_answer
        return ""

    @property
    def is_finished(self) -> bool:
        return self._state in TERMINAL_STATES

    @property
    def error(self) -> Optional[Exception]:
        return self._error

    def start(self) -> None:
        if self._state != TurnState.IDLE:
            raise RuntimeError(f"Cannot start a turn in state {self._state.value}")
        self._state = TurnState.SENDING

    def apply(self, record: StreamRecord) -> bool:
        """
        Feed one stream record into the turn.

        Returns:
            True if this record completed and committed the turn
        """
        if self._state not in (TurnState.SENDING, TurnState.STREAMING):
            logger.debug("Ignoring record for turn in state %s", self._state.value)
            return False
        self._state = TurnState.STREAMING

        if record.session_id and self._turn.captured_session_id is None:
            self._turn.captured_session_id = record.session_id

        if record.data:
            self._turn.partial_answer += record.data
            self._publish(self._turn.partial_answer)
        if record.is_turn_complete:
            return self.commit()
        return False

    def commit(self) -> bool:
        """
        Commit the accumulated answer as one assistant message.

        Returns:
            True if the store accepted the message
        """
        if self._state != TurnState.STREAMING:
            logger.warning("Cannot commit turn in state %s", self._state.value)
            return False

        self._state = TurnState.COMMITTING
        self._turn.completed = True
        origin_id = self._turn.origin_session_id
        final_id = self._turn.final_session_id
        message = Message.create(MessageRole.ASSISTANT, self._turn.partial_answer.strip())

        try:
            if final_id != origin_id:
                self._store.rekey_session(origin_id, final_id, message)
            elif not self._store.append_message(origin_id, message):
                raise SessionNotFoundError(origin_id)
        except (RekeyConflictError, SessionNotFoundError) as exc:
            logger.error("Turn for session %s not committed: %s", origin_id, exc)
            self._error = exc
            self._state = TurnState.FAILED
            self._publish("")
            return False

        self._state = TurnState.DONE
        self._publish("")
        return True

    def finish_stream(self) -> None:
        """Handle the end of the stream; a turn that never completed fails."""
        if self.is_finished:
            return
        self.fail(StreamTruncatedError("Stream ended before turn_complete"))

    def fail(self, reason: Exception, notify: bool = True) -> None:
        """
        Abandon the turn without committing partial data.

        Args:
            reason: What went wrong
            notify: Append the fixed failure notice to the originating session
        """
        if self.is_finished:
            return
        logger.warning(
            "Turn for session %s failed: %s", self._turn.origin_session_id, reason
        )
        self._error = reason
        self._state = TurnState.FAILED
        self._publish("")
        if notify:
            self._store.append_message(
                self._turn.origin_session_id,
                Message.create(MessageRole.ASSISTANT, FAILURE_NOTICE),
            )

    def cancel(self, reason: Optional[Exception] = None) -> None:
        """Abandon the turn silently; no session is touched."""
        self.fail(reason or TurnCancelledError("Turn was cancelled"), notify=False)

    def _publish(self, preview: str) -> None:
        if self._on_preview is not None:
            self._on_preview(preview)
