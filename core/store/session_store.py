"""
In-memory session store.

Holds the ordered collection of conversation sessions and the pointer to the
active one. Every mutation swaps in a new immutable tuple of sessions and
notifies subscribers with it.
"""

import logging
from typing import Callable, Optional

from core.constants import DEFAULT_SESSION_TITLE, TITLE_WORD_COUNT
from core.exceptions import RekeyConflictError, SessionNotFoundError
from core.models import Message, Session

logger = logging.getLogger(__name__)

SessionListener = Callable[[tuple[Session, ...]], None]


def derive_session_title(seed_text: Optional[str], session_count: int) -> str:
    """Title from the first words of the seed text, else an ordinal default."""
    if seed_text:
        words = seed_text.strip().split()[:TITLE_WORD_COUNT]
        if words:
            return " ".join(words)
    return DEFAULT_SESSION_TITLE.format(number=session_count + 1)


class SessionStore:
    """
    Ordered collection of sessions with an active-session pointer.

    Readers get immutable values: `sessions` is a tuple of frozen `Session`
    objects that is replaced, never edited, on each mutation.
    """

    def __init__(self):
        self._sessions: tuple[Session, ...] = ()
        self._active_session_id: Optional[str] = None
        self._listeners: list[SessionListener] = []

    @property
    def sessions(self) -> tuple[Session, ...]:
        return self._sessions

    @property
    def active_session_id(self) -> Optional[str]:
        return self._active_session_id

    @property
    def active_session(self) -> Optional[Session]:
        if self._active_session_id is None:
            return None
        return self.get_session(self._active_session_id)

    def get_session(self, session_id: str) -> Optional[Session]:
        """Get a session by ID, or None if absent."""
        for session in self._sessions:
            if session.id == session_id:
                return session
        return None

    def __contains__(self, session_id: object) -> bool:
        return any(session.id == session_id for session in self._sessions)

    def __len__(self) -> int:
        return len(self._sessions)

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """
        Register a listener called with the new sessions after each mutation.

        Returns:
            A callable that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def create_session(self, seed_text: Optional[str] = None) -> Session:
        """
        Create a session and make it active.

        Args:
            seed_text: Optional first query; its first words become the title

        Returns:
            The new session
        """
        session = Session.create(derive_session_title(seed_text, len(self._sessions)))
        self._active_session_id = session.id
        self._commit(self._sessions + (session,))
        logger.debug("Created session %s (%s)", session.id, session.name)
        return session

    def select_session(self, session_id: str) -> bool:
        """
        Make a session active.

        Returns:
            True if the session exists, False otherwise
        """
        if session_id not in self:
            logger.warning("Cannot select session %s: not found", session_id)
            return False
        if self._active_session_id != session_id:
            self._active_session_id = session_id
            self._commit(self._sessions)
        return True

    def append_message(self, session_id: str, message: Message) -> bool:
        """
        Append a message to a session.

        Unknown sessions are left alone: nothing is created and nothing raises.

        Returns:
            True if the message was appended, False if the session is unknown
        """
        if session_id not in self:
            logger.warning("Dropping message for unknown session %s", session_id)
            return False

        self._commit(
            tuple(
                session.with_message(message) if session.id == session_id else session
                for session in self._sessions
            )
        )
        return True

    def rekey_session(self, old_id: str, new_id: str, message: Message) -> None:
        """
        Replace a session's identifier and append a message in one mutation.

        If the re-keyed session is active, the active pointer follows it.

        Raises:
            SessionNotFoundError: If no session has `old_id`
            RekeyConflictError: If another session already has `new_id`
        """
        if old_id not in self:
            raise SessionNotFoundError(old_id)
        if new_id == old_id:
            self.append_message(old_id, message)
            return
        if new_id in self:
            raise RekeyConflictError(old_id, new_id)

        if self._active_session_id == old_id:
            self._active_session_id = new_id
        self._commit(
            tuple(
                session.with_id(new_id).with_message(message)
                if session.id == old_id
                else session
                for session in self._sessions
            )
        )
        logger.info("Session %s re-keyed to %s", old_id, new_id)

    def _commit(self, sessions: tuple[Session, ...]) -> None:
        """Swap in the new sessions and notify listeners."""
        self._sessions = sessions
        for listener in list(self._listeners):
            try:
                listener(sessions)
            except Exception:
                logger.exception("Session store listener failed")
