"""
Raster image model shared by the rasterizer, classifier and cropper.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class RasterImage:
    """Encoded page raster plus its pixel size."""
    data: bytes
    media_type: str  # e.g. "image/jpeg"
    width: int
    height: int

    @property
    def size(self) -> tuple[int, int]:
        return (self.width, self.height)

    def __repr__(self) -> str:
        return (
            f"RasterImage(media_type={self.media_type!r}, "
            f"size={self.width}x{self.height}, bytes={len(self.data)})"
        )
