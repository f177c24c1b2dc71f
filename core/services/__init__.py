"""Services package for the conversation core."""

from .attachment_encoder import encode_attachment, validate_attachment
from .cancellation import CancellationToken
from .request_builder import build_request
from .stream_decoder import StreamDecoder, iter_records
from .turn_reconciler import ConversationTurn, TurnReconciler, TurnState
from .conversation_controller import ConversationController, PreparedTurn, stream_turn

__all__ = [
    "encode_attachment",
    "validate_attachment",
    "CancellationToken",
    "build_request",
    "StreamDecoder",
    "iter_records",
    "ConversationTurn",
    "TurnReconciler",
    "TurnState",
    "ConversationController",
    "PreparedTurn",
    "stream_turn",
]
