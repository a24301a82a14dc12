"""
Exceptions raised by the OCR pipeline.

Every error derives from MathOCRError and carries a `details` dict for
logs and exports. Once an error leaves the document processor its
details name the page it came from (`page_number`).
"""

from __future__ import annotations

from typing import Any, Optional

# Longest model response kept in error details
RESPONSE_PREVIEW_CHARS = 500


def _details(**values: Any) -> dict[str, Any]:
    """Keep only the detail values that are set."""
    return {k: v for k, v in values.items() if v not in (None, "")}


class MathOCRError(Exception):
    """
    Base exception for all application errors.

    Attributes:
        message: Human-readable error message
        details: Extra context (page, provider, file, ...)
        recoverable: Whether trying again may succeed
    """

    def __init__(
        self,
        message: str,
        details: Optional[dict[str, Any]] = None,
        recoverable: bool = False,
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.recoverable = recoverable

    def __str__(self) -> str:
        if not self.details:
            return self.message
        extra = ", ".join(f"{k}={v!r}" for k, v in self.details.items())
        return f"{self.message} ({extra})"

    @property
    def page_number(self) -> Optional[int]:
        """Page the error is attributed to, if known."""
        return self.details.get("page_number")


class ConfigurationError(MathOCRError):
    """Missing or invalid setting, e.g. no AI_API_KEY when classifying."""

    def __init__(self, message: str, config_key: Optional[str] = None):
        super().__init__(message, _details(config_key=config_key))


class UnsupportedInputError(MathOCRError):
    """
    Input is neither a PDF nor an image (or does not exist).

    Raised before any page is touched or any progress is reported.
    """

    def __init__(self, message: str, source: Optional[str] = None, media_type: Optional[str] = None):
        super().__init__(message, _details(source=source, media_type=media_type))


class RasterizationError(MathOCRError):
    """
    A document or page could not be decoded or drawn.

    Covers corrupt and password-protected PDFs, page numbers outside the
    document, and image bytes that do not decode.
    """

    def __init__(self, message: str, source: Optional[str] = None, page_number: Optional[int] = None):
        super().__init__(message, _details(source=source, page_number=page_number))


class ClassificationError(MathOCRError):
    """
    The vision model call failed or its answer was unusable.

    Unreachable service, timeouts, 408/409/429 and 5xx responses are
    recoverable and are raised as such; everything else (other HTTP
    errors, schema violations) defaults to not recoverable.
    """

    def __init__(
        self,
        message: str,
        ai_provider: Optional[str] = None,
        model: Optional[str] = None,
        response_text: Optional[str] = None,
        page_number: Optional[int] = None,
        recoverable: bool = False,
    ):
        preview = response_text[:RESPONSE_PREVIEW_CHARS] if response_text else None
        super().__init__(
            message,
            _details(
                ai_provider=ai_provider,
                model=model,
                response_preview=preview,
                page_number=page_number,
            ),
            recoverable=recoverable,
        )


class CroppingError(MathOCRError):
    """
    The page raster behind a crop could not be decoded.

    Degenerate boxes are not errors: the cropper returns the whole source image.
    """

    def __init__(self, message: str, box: Optional[Any] = None, page_number: Optional[int] = None):
        super().__init__(
            message,
            _details(box=list(box) if box is not None else None, page_number=page_number),
        )


class ExportError(MathOCRError):
    """An export file could not be written, or a figure could not be embedded."""

    def __init__(self, message: str, file_path: Optional[str] = None, export_format: Optional[str] = None):
        super().__init__(message, _details(file_path=file_path, format=export_format))


class ProcessingAbortedError(MathOCRError):
    """The cancel flag was set between pages; no partial result is returned."""

    def __init__(
        self,
        message: str = "Processing aborted by user",
        items_processed: int = 0,
        items_total: int = 0,
    ):
        super().__init__(
            message,
            {"items_processed": items_processed, "items_total": items_total},
            recoverable=True,
        )
