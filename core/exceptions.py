"""Exceptions raised by the chat client core."""


class ChatClientError(Exception):
    """Base class for every error raised by the chat client."""
    pass


class EmptyQueryError(ChatClientError):
    """The query text is blank; nothing is sent."""
    pass


class AttachmentValidationError(ChatClientError):
    """The selected file is missing or has an unsupported extension."""
    pass


class EncodingError(ChatClientError):
    """The attachment could not be converted into a transmissible payload."""
    pass


class TransportError(ChatClientError):
    """The request could not be sent or the server answered with an error."""
    pass


class StreamTruncatedError(ChatClientError):
    """The response stream ended without a turn_complete record."""
    pass


class TurnCancelledError(ChatClientError):
    """The turn was abandoned through its cancellation token."""
    pass


class TurnInProgressError(ChatClientError):
    """A turn is already in flight for the target session."""

    def __init__(self, session_id: str):
        super().__init__(f"A turn is already in flight for session {session_id}")
        self.session_id = session_id


class SessionNotFoundError(ChatClientError):
    """No session with the given identifier exists in the store."""

    def __init__(self, session_id: str):
        super().__init__(f"Session {session_id} not found")
        self.session_id = session_id


class RekeyConflictError(ChatClientError):
    """Another session already owns the identifier a re-key targets."""

    def __init__(self, old_id: str, new_id: str):
        super().__init__(
            f"Cannot re-key session {old_id} to {new_id}: identifier already in use"
        )
        self.old_id = old_id
        self.new_id = new_id
