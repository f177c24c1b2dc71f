"""ConversationController - Orchestrates sessions, requests and streamed turns."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional

from core.client import AssistantClient
from core.exceptions import (
    EmptyQueryError,
    EncodingError,
    TransportError,
    TurnCancelledError,
    TurnInProgressError,
)
from core.models import ChatSnapshot, Message, MessageRole, PendingAttachment, Session, SessionSummary
from core.services.attachment_encoder import encode_attachment, validate_attachment
from core.services.cancellation import CancellationToken
from core.services.request_builder import build_request
from core.services.stream_decoder import iter_records
from core.services.turn_reconciler import TurnReconciler
from core.store.session_store import SessionStore
from core.types import AttachmentPayload, StreamRecord

logger = logging.getLogger(__name__)

AttachmentEncoder = Callable[[PendingAttachment], Awaitable[AttachmentPayload]]
SnapshotListener = Callable[[ChatSnapshot], None]


@dataclass
class PreparedTurn:
    """Everything needed to run one turn once the user message is recorded."""

    query: str
    session_id: str
    prior_message_count: int
    reconciler: TurnReconciler
    attachment: Optional[PendingAttachment] = None
    cancel_token: CancellationToken = field(default_factory=CancellationToken)


async def stream_turn(
    client: AssistantClient,
    prepared: PreparedTurn,
    on_record: Callable[[StreamRecord], object],
    encoder: AttachmentEncoder = encode_attachment,
) -> None:
    """
    Encode, send and decode one turn, handing each record to `on_record`.

    Returns normally when the stream ends or after the turn_complete record.
    Cancelling the turn's token interrupts a pending read, from any thread.

    Raises:
        TransportError: If the request or the stream fails
        TurnCancelledError: If the token is cancelled
    """
    loop = asyncio.get_running_loop()
    task = asyncio.current_task()
    reading = True

    def interrupt() -> None:
        if reading and task is not None:
            task.cancel()

    def on_cancel() -> None:
        loop.call_soon_threadsafe(interrupt)

    prepared.cancel_token.add_callback(on_cancel)
    try:
        attachment_payload = None
        if prepared.attachment is not None:
            try:
                attachment_payload = await encoder(prepared.attachment)
            except EncodingError as exc:
                # The query still goes out, without the file
                logger.warning("Sending query without attachment: %s", exc)

        request = build_request(
            prepared.query,
            prepared.prior_message_count,
            prepared.session_id,
            attachment_payload,
        )
        prepared.cancel_token.raise_if_cancelled()

        async with client.stream_answer(request) as chunks:
            async for record in iter_records(chunks, prepared.cancel_token):
                on_record(record)
    except asyncio.CancelledError:
        if not prepared.cancel_token.cancelled:
            raise
        raise TurnCancelledError("Turn was cancelled") from None
    finally:
        reading = False
        prepared.cancel_token.remove_callback(on_cancel)


class ConversationController:
    """Facade over the session store and the turn machinery.

    Commands mirror what a chat surface issues (create/select a session,
    pick an attachment, submit a query); `snapshot()` and `subscribe()` give
    it everything it renders.

    Args:
        client: HTTP client for the assistant API
        store: Session store, a fresh one by default
        encoder: Attachment encoder coroutine
    """

    def __init__(
        self,
        client: Optional[AssistantClient] = None,
        store: Optional[SessionStore] = None,
        encoder: AttachmentEncoder = encode_attachment,
    ):
        self._client = client
        self._store = store or SessionStore()
        self._encoder = encoder
        self._turns: dict[str, PreparedTurn] = {}
        self._pending_attachment: Optional[PendingAttachment] = None
        self._listeners: list[SnapshotListener] = []
        self._store.subscribe(lambda _sessions: self._notify())

    @property
    def store(self) -> SessionStore:
        return self._store

    @property
    def client(self) -> AssistantClient:
        if self._client is None:
            self._client = AssistantClient()
        return self._client

    @property
    def pending_attachment(self) -> Optional[PendingAttachment]:
        return self._pending_attachment

    @property
    def active_session_id(self) -> Optional[str]:
        return self._store.active_session_id

    @property
    def messages(self) -> tuple[Message, ...]:
        session = self._store.active_session
        return session.messages if session else ()

    @property
    def in_flight(self) -> bool:
        """Whether the active session has a turn in flight."""
        active_id = self._store.active_session_id
        return active_id is not None and self.is_in_flight(active_id)

    @property
    def streaming_preview(self) -> str:
        active_id = self._store.active_session_id
        prepared = self._turns.get(active_id) if active_id else None
        return prepared.reconciler.preview if prepared else ""

    def is_in_flight(self, session_id: str) -> bool:
        prepared = self._turns.get(session_id)
        return prepared is not None and not prepared.reconciler.is_finished

    def snapshot(self) -> ChatSnapshot:
        return ChatSnapshot(
            sessions=tuple(
                SessionSummary(id=s.id, name=s.name, message_count=s.message_count)
                for s in self._store.sessions
            ),
            active_session_id=self._store.active_session_id,
            messages=self.messages,
            streaming_preview=self.streaming_preview,
            in_flight=self.in_flight,
        )

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        """Register a listener called with a fresh snapshot after each change."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def create_session(self) -> Session:
        return self._store.create_session()

    def select_session(self, session_id: str) -> bool:
        return self._store.select_session(session_id)

    def select_attachment(self, path: str) -> PendingAttachment:
        """
        Hold a file for the next submission, replacing any previous one.

        Raises:
            AttachmentValidationError: If the file is not an existing PDF/DOCX
        """
        self._pending_attachment = validate_attachment(path)
        self._notify()
        return self._pending_attachment

    def clear_attachment(self) -> None:
        if self._pending_attachment is not None:
            self._pending_attachment = None
            self._notify()

    def prepare_turn(self, query: str) -> PreparedTurn:
        """
        Record the user's message and set up the turn that answers it.

        Raises:
            EmptyQueryError: If the query is blank (nothing changes)
            TurnInProgressError: If the target session already has a live turn
        """
        query = query.strip()
        if not query:
            raise EmptyQueryError("Query text is empty")

        session = self._store.active_session
        if session is not None and self.is_in_flight(session.id):
            raise TurnInProgressError(session.id)
        if session is None:
            session = self._store.create_session(query)

        prior_message_count = session.message_count
        self._store.append_message(session.id, Message.create(MessageRole.USER, query))

        attachment, self._pending_attachment = self._pending_attachment, None
        reconciler = TurnReconciler(
            self._store, session.id, on_preview=lambda _preview: self._notify()
        )
        reconciler.start()

        prepared = PreparedTurn(
            query=query,
            session_id=session.id,
            prior_message_count=prior_message_count,
            reconciler=reconciler,
            attachment=attachment,
        )
        self._turns[session.id] = prepared
        self._notify()
        return prepared

    async def run_turn(self, prepared: PreparedTurn) -> None:
        """Drive a prepared turn to DONE or FAILED."""
        reconciler = prepared.reconciler
        try:
            await stream_turn(self.client, prepared, reconciler.apply, self._encoder)
            reconciler.finish_stream()
        except TurnCancelledError as exc:
            reconciler.cancel(exc)
        except TransportError as exc:
            reconciler.fail(exc)
        except asyncio.CancelledError:
            reconciler.cancel()
            raise
        except Exception as exc:
            logger.exception("Turn for session %s crashed", prepared.session_id)
            reconciler.fail(exc)
        finally:
            self.release_turn(prepared)

    async def submit(self, query: str) -> Optional[PreparedTurn]:
        """
        Send a query on the active session and wait for the turn to end.

        Returns:
            The finished turn, or None if the query was blank
        """
        try:
            prepared = self.prepare_turn(query)
        except EmptyQueryError:
            return None
        await self.run_turn(prepared)
        return prepared

    def cancel_turn(self, session_id: Optional[str] = None) -> bool:
        """
        Abandon the live turn of a session (the active one by default).

        Returns:
            True if a turn was cancelled
        """
        session_id = session_id or self._store.active_session_id
        prepared = self._turns.get(session_id) if session_id else None
        if prepared is None or prepared.reconciler.is_finished:
            return False

        prepared.cancel_token.cancel()
        prepared.reconciler.cancel()
        self.release_turn(prepared)
        return True

    def release_turn(self, prepared: PreparedTurn) -> None:
        """Forget a turn once it reached a terminal state."""
        if self._turns.get(prepared.session_id) is prepared:
            del self._turns[prepared.session_id]
            self._notify()

    def _notify(self) -> None:
        if not self._listeners:
            return
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("Snapshot listener failed")
