"""
Page Rasterizer processor.

Renders PDF pages to JPEG rasters using PyMuPDF, and wraps single image
inputs as page rasters.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator, Optional

import fitz  # PyMuPDF
from PIL import Image

from .base import BaseProcessor, ProcessingContext
from ..exceptions import RasterizationError
from ..models import RasterImage
from ..utils.image_utils import open_image, encode_jpeg


class PageRasterizer(BaseProcessor):
    """
    Render document pages as high-resolution JPEG rasters.

    Pages are drawn at a fixed oversampling scale (3x the native page size
    by default) so small axis and point labels stay legible. The raster is
    sent to the classifier and is also the cropping source.
    """

    name = "PageRasterizer"

    def __init__(
        self,
        context: ProcessingContext,
        scale: Optional[float] = None,
        jpeg_quality: Optional[int] = None,
    ):
        """
        Initialize rasterizer.

        Args:
            context: Processing context
            scale: Oversampling factor (default from config: 3.0)
            jpeg_quality: JPEG quality 1-100 (default from config: 95)
        """
        super().__init__(context)
        self.scale = scale or self.config.render.scale
        self.jpeg_quality = jpeg_quality or self.config.render.jpeg_quality

    @contextmanager
    def open_document(self, data: bytes, source: Optional[str] = None) -> Iterator[fitz.Document]:
        """
        Decode a PDF once for the whole run.

        The handle is closed on every exit path.

        Raises:
            RasterizationError: The PDF cannot be opened or has no pages
        """
        try:
            doc = fitz.open(stream=data, filetype="pdf")
        except Exception as e:
            raise RasterizationError(f"Failed to open PDF: {e}", source=source) from e

        try:
            if doc.needs_pass:
                raise RasterizationError("PDF is password-protected", source=source)
            if doc.page_count < 1:
                raise RasterizationError("PDF has no pages", source=source)

            self.log_debug(f"Opened PDF with {doc.page_count} pages", source=source)
            yield doc
        finally:
            doc.close()

    def process(self, doc: fitz.Document, page_number: int) -> RasterImage:
        """
        Render one page.

        Args:
            doc: Open PyMuPDF document
            page_number: 1-based page number

        Returns:
            JPEG raster of the page

        Raises:
            RasterizationError: Page out of range or cannot be drawn
        """
        if not 1 <= page_number <= doc.page_count:
            raise RasterizationError(
                f"Page {page_number} out of range (document has {doc.page_count} pages)",
                page_number=page_number,
            )

        try:
            page = doc.load_page(page_number - 1)
            matrix = fitz.Matrix(self.scale, self.scale)
            pix = page.get_pixmap(matrix=matrix, alpha=False)
            img = Image.frombytes("RGB", (pix.width, pix.height), pix.samples)
            data = encode_jpeg(img, quality=self.jpeg_quality)
        except Exception as e:
            raise RasterizationError(f"Failed to render page: {e}", page_number=page_number) from e

        self.log_debug(f"Rendered page {page_number}", size=f"{pix.width}x{pix.height}")

        return RasterImage(
            data=data,
            media_type="image/jpeg",
            width=pix.width,
            height=pix.height,
        )

    render = process

    def load_image(self, data: bytes, media_type: str, source: Optional[str] = None) -> RasterImage:
        """
        Use an image input directly as the page raster.

        The bytes are kept as they are; decoding only checks them and
        reads the pixel size.

        Raises:
            RasterizationError: The bytes do not decode as an image
        """
        try:
            img = open_image(data)
        except ValueError as e:
            raise RasterizationError(str(e), source=source, page_number=1) from e

        self.log_debug("Loaded image input", size=f"{img.width}x{img.height}", media_type=media_type)

        return RasterImage(data=data, media_type=media_type, width=img.width, height=img.height)
