"""Attachment helpers: validate a picked file and encode it for the wire."""

from __future__ import annotations

import asyncio
import base64
import logging
import mimetypes
from pathlib import Path

from core.constants import (
    ALLOWED_ATTACHMENT_EXTENSIONS,
    ATTACHMENT_MEDIA_TYPES,
    DEFAULT_MEDIA_TYPE,
    INVALID_ATTACHMENT_NOTICE,
)
from core.exceptions import AttachmentValidationError, EncodingError
from core.models import PendingAttachment
from core.types import AttachmentPayload

logger = logging.getLogger(__name__)


def validate_attachment(path: str | Path) -> PendingAttachment:
    """
    Check a picked file and wrap it as a pending attachment.

    Raises:
        AttachmentValidationError: If the file is missing or is not PDF/DOCX
    """
    path_obj = Path(path)
    extension = path_obj.suffix.lstrip(".").lower()
    if extension not in ALLOWED_ATTACHMENT_EXTENSIONS:
        raise AttachmentValidationError(INVALID_ATTACHMENT_NOTICE)
    if not path_obj.is_file():
        raise AttachmentValidationError(f"File not found: {path_obj}")
    return PendingAttachment(path=str(path_obj), extension=extension)


def guess_media_type(path: str | Path) -> str:
    path_obj = Path(path)
    extension = path_obj.suffix.lstrip(".").lower()
    if extension in ATTACHMENT_MEDIA_TYPES:
        return ATTACHMENT_MEDIA_TYPES[extension]
    mime_type, _ = mimetypes.guess_type(path_obj.name)
    return mime_type or DEFAULT_MEDIA_TYPE


def file_path_to_data_url(path: str | Path, media_type: str) -> str:
    """Convert a file into a base64 data URL."""
    encoded = base64.b64encode(Path(path).read_bytes()).decode("ascii")
    return f"data:{media_type};base64,{encoded}"


async def encode_attachment(attachment: PendingAttachment) -> AttachmentPayload:
    """
    Encode a pending attachment into the payload sent with a query.

    The file is read on a worker thread so the event loop keeps serving
    other turns.

    Raises:
        EncodingError: If the file cannot be read
    """
    media_type = guess_media_type(attachment.path)
    try:
        content = await asyncio.to_thread(
            file_path_to_data_url, attachment.path, media_type
        )
    except OSError as exc:
        logger.warning("Failed to encode attachment %s: %s", attachment.path, exc)
        raise EncodingError(f"Failed to encode {attachment.filename}: {exc}") from exc

    return AttachmentPayload(
        content=content,
        filename=attachment.filename,
        media_type=media_type,
    )
