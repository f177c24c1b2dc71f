"""Tests for AttachmentHandler."""

import pytest

from core.constants import INVALID_ATTACHMENT_NOTICE
from core.services.conversation_controller import ConversationController
from ui.viewmodels.chat.attachment_handler import AttachmentHandler


@pytest.fixture
def controller():
    """Create a controller that never reaches the network."""
    return ConversationController()


@pytest.fixture
def attachment_handler(controller):
    """Create AttachmentHandler instance for testing."""
    return AttachmentHandler(controller)


@pytest.fixture
def temp_pdf_file(tmp_path):
    """Create a temporary PDF file for testing."""
    pdf_file = tmp_path / "resume.pdf"
    pdf_file.write_bytes(b"%PDF-1.4 fake")
    return str(pdf_file)


def test_initial_state(attachment_handler):
    """Test initial state of AttachmentHandler."""
    assert attachment_handler.pending_attachment is None
    assert not attachment_handler.has_attachment()


def test_add_attachment_success(attachment_handler, temp_pdf_file, qtbot):
    """Test adding a valid attachment."""
    with qtbot.waitSignal(attachment_handler.pending_attachment_changed) as blocker:
        result = attachment_handler.add_pending_attachment(temp_pdf_file)

    assert result is True
    assert attachment_handler.has_attachment()
    assert attachment_handler.pending_attachment.path == temp_pdf_file
    assert blocker.args == [attachment_handler.pending_attachment]


def test_add_attachment_empty_path(attachment_handler):
    """Test adding empty file path."""
    result = attachment_handler.add_pending_attachment("")

    assert result is False
    assert attachment_handler.pending_attachment is None


def test_add_attachment_wrong_extension(attachment_handler, tmp_path, qtbot):
    """Test that an image is rejected with the user-facing notice."""
    image_file = tmp_path / "photo.png"
    image_file.write_bytes(b"fake image data")

    with qtbot.waitSignal(attachment_handler.error_occurred) as blocker:
        result = attachment_handler.add_pending_attachment(str(image_file))

    assert result is False
    assert blocker.args == [INVALID_ATTACHMENT_NOTICE]
    assert attachment_handler.pending_attachment is None


def test_add_attachment_nonexistent_file(attachment_handler, qtbot):
    """Test adding non-existent file."""
    with qtbot.waitSignal(attachment_handler.error_occurred):
        result = attachment_handler.add_pending_attachment("/nonexistent/file.pdf")

    assert result is False
    assert attachment_handler.pending_attachment is None


def test_new_selection_replaces_previous(attachment_handler, temp_pdf_file, tmp_path):
    """Test that only one attachment is pending at a time."""
    docx_file = tmp_path / "letter.docx"
    docx_file.write_bytes(b"PK fake docx")

    attachment_handler.add_pending_attachment(temp_pdf_file)
    attachment_handler.add_pending_attachment(str(docx_file))

    assert attachment_handler.pending_attachment.path == str(docx_file)
    assert attachment_handler.pending_attachment.extension == "docx"


def test_clear_pending_attachment(attachment_handler, temp_pdf_file, qtbot):
    """Test clearing the pending attachment."""
    attachment_handler.add_pending_attachment(temp_pdf_file)

    with qtbot.waitSignal(attachment_handler.pending_attachment_changed) as blocker:
        attachment_handler.clear_pending_attachment()

    assert blocker.args == [None]
    assert not attachment_handler.has_attachment()


def test_clear_empty_attachment(attachment_handler):
    """Test clearing when already empty (should not emit signal)."""
    received = []
    attachment_handler.pending_attachment_changed.connect(received.append)

    attachment_handler.clear_pending_attachment()

    assert received == []


def test_sync_reports_consumed_attachment(attachment_handler, controller, temp_pdf_file):
    """Test that a turn consuming the attachment is reported on sync."""
    received = []
    attachment_handler.add_pending_attachment(temp_pdf_file)
    attachment_handler.pending_attachment_changed.connect(received.append)

    controller.prepare_turn("Please review my resume")
    attachment_handler.sync()

    assert received == [None]
    assert not attachment_handler.has_attachment()
