"""TurnWorker QThread for streaming one answer off the UI thread."""

import asyncio
import logging
from typing import Callable

from PySide6.QtCore import QThread, Signal

from core.client import AssistantClient
from core.exceptions import TransportError, TurnCancelledError
from core.services.attachment_encoder import encode_attachment
from core.services.conversation_controller import AttachmentEncoder, PreparedTurn, stream_turn

logger = logging.getLogger(__name__)


class TurnWorker(QThread):
    """Worker thread that encodes, sends and decodes one turn.

    This worker creates its own asyncio event loop and HTTP client. It never
    touches the session store: every decoded record is emitted and applied
    on the thread that owns the store.

    Signals:
        record_received: Emitted for each decoded record (record, run_token)
        completed: Emitted when the stream ends normally (run_token)
        error: Emitted when the transport fails (error_message, run_token)
        cancelled: Emitted when the turn's token was cancelled (run_token)
    """

    record_received = Signal(object, str)  # StreamRecord, run_token
    completed = Signal(str)                # run_token
    error = Signal(str, str)               # error, run_token
    cancelled = Signal(str)                # run_token

    def __init__(
        self,
        prepared: PreparedTurn,
        run_token: str,
        client_factory: Callable[[], AssistantClient] = AssistantClient,
        encoder: AttachmentEncoder = encode_attachment,
    ):
        """Initialize the turn worker.

        Args:
            prepared: The turn to run
            run_token: A unique token to identify this run
            client_factory: Builds the HTTP client used on this thread's loop
            encoder: Attachment encoder coroutine
        """
        super().__init__()
        self.prepared = prepared
        self.run_token = run_token
        self._client_factory = client_factory
        self._encoder = encoder

    def run(self):
        """Run the turn in the worker thread."""
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        try:
            loop.run_until_complete(self._run())
        finally:
            loop.close()

    async def _run(self) -> None:
        try:
            client = self._client_factory()
        except Exception as e:
            logger.exception("Could not create assistant client: %s", e)
            self.error.emit(str(e), self.run_token)
            return

        try:
            await stream_turn(client, self.prepared, self._emit_record, self._encoder)
            self.completed.emit(self.run_token)
        except TurnCancelledError:
            self.cancelled.emit(self.run_token)
        except TransportError as e:
            self.error.emit(str(e), self.run_token)
        except Exception as e:
            logger.exception("Turn streaming failed: %s", e)
            self.error.emit(str(e), self.run_token)
        finally:
            await client.aclose()

    def _emit_record(self, record) -> None:
        self.record_received.emit(record, self.run_token)
