"""Store package for conversation state."""

from core.store.session_store import SessionStore, derive_session_title

__all__ = ["SessionStore", "derive_session_title"]
