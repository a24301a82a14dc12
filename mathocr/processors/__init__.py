"""
Pipeline processors.

Contains all processing components of the page pipeline:
- RegionCropper: Crop figure regions from a page raster
- PageRasterizer: Render PDF pages (or wrap an image) as rasters
- BlockClassifier: Classify a page into text/figure blocks with a vision model
- PageProcessor: Rasterize, classify and crop one page
- DocumentProcessor: Process a whole document page by page
"""

from .base import BaseProcessor, ProcessingContext
from .region_cropper import RegionCropper, crop_region
from .page_rasterizer import PageRasterizer
from .block_classifier import BlockClassifier, CLASSIFIER_PROMPT, RESPONSE_SCHEMA
from .page_processor import PageProcessor
from .document_processor import DocumentProcessor, ProgressCallback, process_file

__all__ = [
    "BaseProcessor",
    "ProcessingContext",
    "RegionCropper",
    "crop_region",
    "PageRasterizer",
    "BlockClassifier",
    "CLASSIFIER_PROMPT",
    "RESPONSE_SCHEMA",
    "PageProcessor",
    "DocumentProcessor",
    "ProgressCallback",
    "process_file",
]
