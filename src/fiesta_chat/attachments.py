"""Validation and encoding of image files attached to a prompt."""

from __future__ import annotations

import base64
import logging
import mimetypes
import os
from pathlib import Path

from .exceptions import AttachmentError
from .models import ImagePayload

LOGGER = logging.getLogger(__name__)

# Image file extensions accepted for prompt attachments.
IMAGE_EXTENSIONS: frozenset[str] = frozenset(
    {".png", ".jpg", ".jpeg", ".gif", ".webp"}
)

DEFAULT_MAX_IMAGE_BYTES = 10 * 1024 * 1024


def is_image_path(path: str) -> bool:
    return Path(path).suffix.lower() in IMAGE_EXTENSIONS


def _is_regular_file(path: Path) -> bool:
    try:
        return path.is_file() and not path.is_symlink()
    except OSError:
        return False


def load_image_attachment(
    raw_path: str, *, max_bytes: int = DEFAULT_MAX_IMAGE_BYTES
) -> ImagePayload:
    """Read an image file from disk and return it as a base64 payload.

    Raises ``AttachmentError`` when the path is missing, not an image, or
    larger than ``max_bytes``.
    """
    expanded = Path(os.path.expanduser(raw_path.strip()))
    if not _is_regular_file(expanded):
        raise AttachmentError(f"Image not found: {expanded}")
    ext = expanded.suffix.lower()
    if ext not in IMAGE_EXTENSIONS:
        raise AttachmentError(f"Unsupported image type: {ext or '(none)'}")
    try:
        size = expanded.stat().st_size
        if size > max_bytes:
            raise AttachmentError(
                f"Image too large ({size} bytes). Max is {max_bytes} bytes."
            )
        data = expanded.read_bytes()
    except OSError as exc:
        raise AttachmentError(f"Unable to read image: {exc}") from exc

    mime_type, _ = mimetypes.guess_type(expanded.name)
    payload = ImagePayload(
        data=base64.b64encode(data).decode("ascii"),
        mime_type=mime_type or "image/png",
    )
    LOGGER.info(
        "attachments.image.loaded",
        extra={
            "event": "attachments.image.loaded",
            "mime_type": payload.mime_type,
            "bytes": size,
        },
    )
    return payload
