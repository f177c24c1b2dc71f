"""Unit tests for TurnReconciler."""

import pytest

from core.constants import FAILURE_NOTICE
from core.exceptions import RekeyConflictError, StreamTruncatedError, TransportError
from core.models import Message, MessageRole
from core.services.turn_reconciler import TurnReconciler, TurnState
from core.store.session_store import SessionStore
from core.types import StreamRecord


@pytest.fixture
def store():
    """Create a store with one active session holding the user's question."""
    store = SessionStore()
    session = store.create_session("How do I write a resume cover letter")
    store.append_message(session.id, Message.create(MessageRole.USER, "How do I write"))
    return store


@pytest.fixture
def previews():
    return []


@pytest.fixture
def reconciler(store, previews):
    """Create a started TurnReconciler for the active session."""
    reconciler = TurnReconciler(store, store.active_session_id, on_preview=previews.append)
    reconciler.start()
    return reconciler


def _records(*fragments, **final):
    records = [StreamRecord(data=fragment) for fragment in fragments]
    records.append(StreamRecord(turn_complete=True, **final))
    return records


class TestLifecycle:
    """Test state transitions."""

    def test_initial_state(self, store):
        reconciler = TurnReconciler(store, store.active_session_id)

        assert reconciler.state == TurnState.IDLE
        assert reconciler.preview == ""

    def test_start_moves_to_sending(self, reconciler):
        assert reconciler.state == TurnState.SENDING

    def test_start_twice_raises(self, reconciler):
        with pytest.raises(RuntimeError):
            reconciler.start()

    def test_first_record_moves_to_streaming(self, reconciler):
        reconciler.apply(StreamRecord(data="Hi"))

        assert reconciler.state == TurnState.STREAMING
        assert reconciler.preview == "Hi"


class TestStreaming:
    """Test partial answer accumulation."""

    def test_preview_is_concatenation_in_arrival_order(self, reconciler, previews):
        for record in _records("Start", " writing", " with...")[:-1]:
            reconciler.apply(record)

        assert previews == ["Start", "Start writing", "Start writing with..."]
        assert reconciler.turn.partial_answer == "Start writing with..."

    def test_records_without_data_do_not_publish(self, reconciler, previews):
        reconciler.apply(StreamRecord(session_id="srv-1"))
        reconciler.apply(StreamRecord(data=""))

        assert previews == []

    def test_first_session_id_wins(self, reconciler, store):
        reconciler.apply(StreamRecord(session_id="S2", data="a"))
        reconciler.apply(StreamRecord(session_id="S3", data="b"))
        reconciler.apply(StreamRecord(turn_complete=True, session_id="S3"))

        assert reconciler.turn.captured_session_id == "S2"
        assert store.get_session("S2") is not None
        assert store.get_session("S3") is None

    def test_empty_session_id_is_not_captured(self, reconciler):
        reconciler.apply(StreamRecord(session_id="", data="a"))

        assert reconciler.turn.captured_session_id is None


class TestCommit:
    """Test committing a completed turn."""

    def test_commit_without_session_id_appends(self, reconciler, store, previews):
        origin = reconciler.origin_session_id
        for record in _records("Hello", " there"):
            committed = reconciler.apply(record)

        assert committed is True
        assert reconciler.state == TurnState.DONE
        session = store.get_session(origin)
        assert session.message_count == 2
        assert session.messages[-1].content == "Hello there"
        assert session.messages[-1].role == MessageRole.ASSISTANT
        assert previews[-1] == ""
        assert reconciler.preview == ""

    def test_commit_rekeys_and_follows_selection(self, reconciler, store):
        origin = reconciler.origin_session_id
        for record in _records("Start", " writing", " with...", session_id="srv-42"):
            reconciler.apply(record)

        assert origin not in store
        session = store.get_session("srv-42")
        assert session.name == "How do I write"
        assert session.message_count == 2
        assert session.messages[-1].content == "Start writing with..."
        assert store.active_session_id == "srv-42"

    def test_commit_trims_answer(self, reconciler, store):
        for record in _records("  padded answer \n"):
            reconciler.apply(record)

        assert store.active_session.messages[-1].content == "padded answer"

    def test_data_on_the_completing_record_is_kept(self, reconciler, store):
        reconciler.apply(StreamRecord(data="Hello"))
        reconciler.apply(StreamRecord(data=" end", turn_complete=True))

        assert store.active_session.messages[-1].content == "Hello end"

    def test_commit_happens_once(self, reconciler, store):
        origin = reconciler.origin_session_id
        for record in _records("Answer"):
            reconciler.apply(record)

        assert reconciler.apply(StreamRecord(turn_complete=True)) is False
        reconciler.finish_stream()

        assert store.get_session(origin).message_count == 2

    def test_rekey_conflict_fails_without_touching_store(self, store):
        origin = store.active_session_id
        taken = store.create_session()
        store.select_session(origin)
        before = store.sessions
        reconciler = TurnReconciler(store, origin)
        reconciler.start()

        for record in _records("Answer", session_id=taken.id):
            reconciler.apply(record)

        assert reconciler.state == TurnState.FAILED
        assert isinstance(reconciler.error, RekeyConflictError)
        assert store.sessions == before
        assert store.active_session_id == origin


class TestFailure:
    """Test failed turns."""

    def test_truncated_stream_appends_notice(self, reconciler, store, previews):
        origin = reconciler.origin_session_id
        reconciler.apply(StreamRecord(data="partial"))

        reconciler.finish_stream()

        assert reconciler.state == TurnState.FAILED
        assert isinstance(reconciler.error, StreamTruncatedError)
        messages = store.get_session(origin).messages
        assert [m.content for m in messages] == ["How do I write", FAILURE_NOTICE]
        assert previews[-1] == ""

    def test_fail_while_sending(self, reconciler, store):
        reconciler.fail(TransportError("refused"))

        assert reconciler.state == TurnState.FAILED
        assert store.active_session.messages[-1].content == FAILURE_NOTICE

    def test_cancel_appends_nothing(self, reconciler, store):
        reconciler.apply(StreamRecord(data="partial"))

        reconciler.cancel()

        assert reconciler.state == TurnState.FAILED
        assert reconciler.preview == ""
        assert store.active_session.message_count == 1

    def test_records_after_failure_are_ignored(self, reconciler, store):
        reconciler.fail(TransportError("refused"))

        assert reconciler.apply(StreamRecord(data="late", turn_complete=True)) is False
        assert store.active_session.message_count == 2
