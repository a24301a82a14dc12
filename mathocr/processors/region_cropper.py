"""
Region Cropper processor.

Cuts a figure out of a page raster using a normalized bounding box.
"""

from __future__ import annotations

import math
from typing import Optional, Sequence, Tuple

from PIL import Image

from .base import BaseProcessor, ProcessingContext
from ..exceptions import CroppingError
from ..models import BoundingBox, RasterImage
from ..utils.image_utils import open_image, flatten_on_white, encode_png


class RegionCropper(BaseProcessor):
    """
    Crop normalized regions from a page raster.

    The box is converted to pixels using the source's real size, grown by
    a fixed padding on every side and clamped to the image. The crop is
    drawn onto an opaque white canvas and encoded as PNG.

    A degenerate box (inverted, or empty after clamping) yields the whole
    source raster, re-encoded as PNG, instead of failing.
    """

    name = "RegionCropper"

    def __init__(self, context: ProcessingContext, padding: Optional[int] = None):
        super().__init__(context)
        self.padding = self.config.crop.padding if padding is None else padding

    def process(
        self,
        source: RasterImage,
        box: Sequence[float],
        decoded: Optional[Image.Image] = None,
    ) -> bytes:
        """
        Crop one region.

        Args:
            source: Page raster the box refers to
            box: [y_min, x_min, y_max, x_max] normalized 0-1
            decoded: Already decoded `source`, to avoid decoding per figure

        Returns:
            PNG bytes of the crop, or of the whole source for a degenerate box
        """
        box = BoundingBox(*box)
        img = decoded if decoded is not None else self.load(source)
        width, height = img.size

        rect = self.pixel_rect(box, width, height)
        if rect is None:
            # Same pixels as the source, PNG like every other crop
            self.log_debug("Degenerate box, returning whole source image", box=box.to_list())
            canvas = flatten_on_white(img)
        else:
            canvas = flatten_on_white(img.crop(rect))
            self.log_debug("Cropped figure", box=box.to_list(), rect=rect)
        return encode_png(canvas)

    crop = process

    def load(self, source: RasterImage) -> Image.Image:
        """Decode the source raster once for several crops."""
        try:
            return open_image(source.data)
        except ValueError as e:
            raise CroppingError(f"Cannot decode page raster for cropping: {e}") from e

    def pixel_rect(
        self,
        box: BoundingBox,
        width: int,
        height: int,
    ) -> Optional[Tuple[int, int, int, int]]:
        """
        Padded, clamped pixel rectangle (left, top, right, bottom).

        Returns:
            The rectangle, or None when it has no area
        """
        if box.is_inverted:
            return None

        left = max(0, math.floor(box.x_min * width - self.padding))
        top = max(0, math.floor(box.y_min * height - self.padding))
        right = min(width, math.ceil(box.x_max * width + self.padding))
        bottom = min(height, math.ceil(box.y_max * height + self.padding))

        if right - left <= 0 or bottom - top <= 0:
            return None

        return (left, top, right, bottom)


def crop_region(source: RasterImage, box: Sequence[float], padding: int = 10) -> bytes:
    """
    Convenience function to crop one region with default configuration.

    Args:
        source: Page raster
        box: [y_min, x_min, y_max, x_max] normalized 0-1
        padding: Padding in pixels on every side

    Returns:
        PNG bytes of the crop (the whole source for a degenerate box)
    """
    from ..config import Config

    context = ProcessingContext(config=Config())
    return RegionCropper(context, padding=padding).crop(source, box)
