"""
Utility functions for the math exam OCR pipeline.
"""

from .file_utils import (
    InputKind,
    PDF_MEDIA_TYPE,
    safe_stem,
    sniff_media_type,
    guess_media_type,
    detect_input_kind,
)

from .image_utils import (
    open_image,
    flatten_on_white,
    encode_png,
    encode_jpeg,
    to_data_url,
)

from .timing import Timer, format_duration

from .ai_parser import extract_json

__all__ = [
    # File utilities
    "InputKind",
    "PDF_MEDIA_TYPE",
    "safe_stem",
    "sniff_media_type",
    "guess_media_type",
    "detect_input_kind",

    # Image utilities
    "open_image",
    "flatten_on_white",
    "encode_png",
    "encode_jpeg",
    "to_data_url",

    # Timing utilities
    "Timer",
    "format_duration",

    # Model output parsing
    "extract_json",
]
