"""
Page Processor.

Runs one page through rasterize -> classify -> crop.
"""

from __future__ import annotations

from typing import List, Optional

import fitz  # PyMuPDF

from .base import BaseProcessor, ProcessingContext
from .block_classifier import BlockClassifier
from .page_rasterizer import PageRasterizer
from .region_cropper import RegionCropper
from ..models import ContentBlock, PageResult, PageTiming, RasterImage


class PageProcessor(BaseProcessor):
    """
    Build the PageResult of one page.

    Figures are cropped from the exact raster that was classified, so the
    box coordinates and the crop share one coordinate space. Text blocks
    pass through unchanged, block order is kept, and a figure without a
    box is kept uncropped. No retries here.
    """

    name = "PageProcessor"

    def __init__(
        self,
        context: ProcessingContext,
        rasterizer: Optional[PageRasterizer] = None,
        classifier: Optional[BlockClassifier] = None,
        cropper: Optional[RegionCropper] = None,
    ):
        super().__init__(context)
        self.rasterizer = rasterizer or PageRasterizer(context)
        self.classifier = classifier or BlockClassifier(context)
        self.cropper = cropper or RegionCropper(context)
        self.last_timing: Optional[PageTiming] = None

    def process(self, doc: fitz.Document, page_number: int) -> PageResult:
        """
        Process one page of an open PDF.

        Args:
            doc: Open document handle, shared across pages
            page_number: 1-based page number

        Returns:
            The page's blocks with figures cropped
        """
        with self._timer.measure("rasterize"):
            raster = self.rasterizer.render(doc, page_number)
        rasterize_time = self._timer.last("rasterize")

        result = self.process_raster(raster, page_number)
        self.last_timing.rasterize_time_sec = rasterize_time
        self.last_timing.total_time_sec += rasterize_time
        return result

    process_page = process

    def process_raster(self, raster: RasterImage, page_number: int) -> PageResult:
        """
        Classify a ready raster and crop its figures.

        Used directly for image inputs, where the image is the raster.
        """
        timing = PageTiming(page_number=page_number)
        with self._timer.measure("classify"):
            drafts = self.classifier.classify(raster.data, raster.media_type)
        with self._timer.measure("crop"):
            blocks = self._crop_figures(raster, drafts, timing)

        timing.classify_time_sec = self._timer.last("classify")
        timing.crop_time_sec = self._timer.last("crop")

        timing.blocks = len(blocks)
        timing.total_time_sec = timing.classify_time_sec + timing.crop_time_sec
        self.last_timing = timing

        self.log_debug(
            f"Page {page_number} done",
            blocks=timing.blocks,
            figures=timing.figures,
            failed_crops=timing.failed_crops,
        )
        return PageResult(page_number=page_number, blocks=blocks)

    def _crop_figures(
        self,
        raster: RasterImage,
        drafts: List[ContentBlock],
        timing: PageTiming,
    ) -> List[ContentBlock]:
        decoded = None
        blocks: List[ContentBlock] = []

        for block in drafts:
            if not block.is_figure:
                blocks.append(block)
                continue

            timing.figures += 1
            if block.bounding_box is None:
                timing.failed_crops += 1
                blocks.append(block)
                continue

            if decoded is None:
                decoded = self.cropper.load(raster)
            image = self.cropper.crop(raster, block.bounding_box, decoded=decoded)
            timing.crops += 1
            blocks.append(block.with_cropped_image(image))

        return blocks
