"""
Data models for the math exam OCR pipeline.

These models are immutable value objects (except the statistics, which
accumulate during a run) and serialize to JSON through `to_dict()`.
"""

from .content import BlockType, BoundingBox, ContentBlock, PageResult, ProcessStatus
from .raster import RasterImage
from .processing_stats import ProcessingStats, PageTiming, AIUsage

__all__ = [
    # Content models
    "BlockType",
    "BoundingBox",
    "ContentBlock",
    "PageResult",
    "ProcessStatus",

    # Raster
    "RasterImage",

    # Processing stats
    "ProcessingStats",
    "PageTiming",
    "AIUsage",
]
