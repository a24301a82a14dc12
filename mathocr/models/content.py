"""
Content models.

A processed document is an ordered list of PageResult objects, each holding
the page's content blocks in reading order. All models are immutable.
"""

from __future__ import annotations

import base64
from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional, Tuple, Any, NamedTuple, Sequence


class BlockType(str, Enum):
    """Kind of a content block."""
    TEXT = "text"
    FIGURE = "figure"


class BoundingBox(NamedTuple):
    """Normalized figure extent, [y_min, x_min, y_max, x_max] in 0-1."""
    y_min: float
    x_min: float
    y_max: float
    x_max: float

    @property
    def is_inverted(self) -> bool:
        """True when the box has zero or negative extent on either axis."""
        return self.y_max <= self.y_min or self.x_max <= self.x_min

    def to_list(self) -> list[float]:
        return [self.y_min, self.x_min, self.y_max, self.x_max]


@dataclass(frozen=True)
class ContentBlock:
    """
    One classified unit of page content.

    TEXT blocks carry `text` (OCR output with inline LaTeX) and never a
    bounding box or image. FIGURE blocks carry a `bounding_box` and, once
    cropped, `cropped_image` (PNG bytes). A FIGURE without `cropped_image`
    after processing is a failed crop.
    """

    kind: BlockType
    text: Optional[str] = None
    bounding_box: Optional[BoundingBox] = None
    cropped_image: Optional[bytes] = None

    def __post_init__(self):
        if not isinstance(self.kind, BlockType):
            object.__setattr__(self, "kind", BlockType(self.kind))
        if self.bounding_box is not None and not isinstance(self.bounding_box, BoundingBox):
            object.__setattr__(self, "bounding_box", BoundingBox(*self.bounding_box))
        if self.kind is BlockType.TEXT:
            if self.text is None:
                raise ValueError("TEXT block requires text")
            if self.bounding_box is not None or self.cropped_image is not None:
                raise ValueError("TEXT block cannot carry a bounding box or image")

    @classmethod
    def text_block(cls, text: str) -> ContentBlock:
        return cls(kind=BlockType.TEXT, text=text)

    @classmethod
    def figure_block(cls, box: Optional[Sequence[float]] = None) -> ContentBlock:
        return cls(kind=BlockType.FIGURE, bounding_box=BoundingBox(*box) if box is not None else None)

    @property
    def is_text(self) -> bool:
        return self.kind is BlockType.TEXT

    @property
    def is_figure(self) -> bool:
        return self.kind is BlockType.FIGURE

    @property
    def crop_failed(self) -> bool:
        """A figure that ended up without an image."""
        return self.is_figure and self.cropped_image is None

    def with_cropped_image(self, image: bytes) -> ContentBlock:
        """Return a copy carrying the cropped figure image."""
        return replace(self, cropped_image=image)

    def image_data_url(self) -> Optional[str]:
        """Cropped image as a PNG data URL."""
        if self.cropped_image is None:
            return None
        b64 = base64.b64encode(self.cropped_image).decode("ascii")
        return f"data:image/png;base64,{b64}"

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"type": self.kind.value}
        if self.text is not None:
            result["content"] = self.text
        if self.bounding_box is not None:
            result["box_2d"] = self.bounding_box.to_list()
        if self.is_figure:
            result["image_base64"] = self.image_data_url()
        return result


@dataclass(frozen=True)
class PageResult:
    """Content blocks of one page in reading order."""

    page_number: int  # 1-based
    blocks: Tuple[ContentBlock, ...] = ()

    def __post_init__(self):
        if self.page_number < 1:
            raise ValueError(f"page_number must be >= 1, got {self.page_number}")
        object.__setattr__(self, "blocks", tuple(self.blocks))

    @property
    def text_blocks(self) -> list[ContentBlock]:
        return [b for b in self.blocks if b.is_text]

    @property
    def figure_blocks(self) -> list[ContentBlock]:
        return [b for b in self.blocks if b.is_figure]

    @property
    def failed_crops(self) -> int:
        return sum(1 for b in self.blocks if b.crop_failed)

    def to_dict(self) -> dict[str, Any]:
        return {
            "page_number": self.page_number,
            "blocks": [b.to_dict() for b in self.blocks],
        }


@dataclass(frozen=True)
class ProcessStatus:
    """Progress snapshot delivered to the progress callback."""

    message: str
    current: int
    total: int

    def __post_init__(self):
        if not 1 <= self.current <= self.total:
            raise ValueError(f"Invalid progress {self.current}/{self.total}")

    @property
    def percent(self) -> float:
        return self.current / self.total * 100
