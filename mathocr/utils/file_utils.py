"""
File and input-type utility functions.

Decides whether an input is a paginated document or a single image.
"""

from __future__ import annotations

import mimetypes
from enum import Enum
from pathlib import Path
from typing import Optional, Tuple

from ..exceptions import UnsupportedInputError

PDF_MEDIA_TYPE = "application/pdf"

# Leading bytes of the formats we accept
_SIGNATURES: Tuple[Tuple[bytes, str], ...] = (
    (b"%PDF-", PDF_MEDIA_TYPE),
    (b"\x89PNG\r\n\x1a\n", "image/png"),
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"GIF87a", "image/gif"),
    (b"GIF89a", "image/gif"),
    (b"BM", "image/bmp"),
    (b"II*\x00", "image/tiff"),
    (b"MM\x00*", "image/tiff"),
)


class InputKind(str, Enum):
    PDF = "pdf"
    IMAGE = "image"


def safe_stem(path: Path) -> str:
    """
    Get filesystem-safe stem from path.

    Replaces special characters with underscores to ensure
    the result can be used as a file name.
    """
    return "".join(
        ch if ch.isalnum() or ch in ("-", "_", ".") else "_"
        for ch in Path(path).stem
    )


def sniff_media_type(data: bytes) -> Optional[str]:
    """Detect media type from leading bytes, or None if unknown."""
    head = data[:16]
    for signature, media_type in _SIGNATURES:
        if head.startswith(signature):
            return media_type
    if head[:4] == b"RIFF" and head[8:12] == b"WEBP":
        return "image/webp"
    return None


def guess_media_type(name: Optional[str]) -> Optional[str]:
    """Media type from a file name's extension."""
    if not name:
        return None
    media_type, _ = mimetypes.guess_type(name)
    return media_type


def detect_input_kind(
    data: bytes,
    name: Optional[str] = None,
    media_type: Optional[str] = None,
) -> Tuple[InputKind, str]:
    """
    Choose the dispatch path for an input file.

    A declared media type wins, then the file extension, then the
    leading bytes.

    Args:
        data: Raw file content
        name: Original file name (for extension lookup)
        media_type: Media type declared by the caller (e.g. an upload)

    Returns:
        Tuple of (input kind, media type)

    Raises:
        UnsupportedInputError: Neither a PDF nor an image
    """
    resolved = media_type or guess_media_type(name) or sniff_media_type(data)

    if resolved == PDF_MEDIA_TYPE:
        return InputKind.PDF, resolved
    if resolved and resolved.startswith("image/"):
        return InputKind.IMAGE, resolved

    raise UnsupportedInputError(
        "Unsupported input: expected a PDF document or an image",
        source=name,
        media_type=resolved,
    )
