"""
Image processing utility functions.

Encoding and decoding helpers shared by the rasterizer and cropper.
"""

from __future__ import annotations

import base64
import io

from PIL import Image, UnidentifiedImageError


def open_image(data: bytes) -> Image.Image:
    """
    Decode image bytes into a fully loaded PIL image.

    Raises:
        ValueError: If the bytes are not a decodable image
    """
    try:
        img = Image.open(io.BytesIO(data))
        img.load()
    except (UnidentifiedImageError, OSError) as e:
        raise ValueError(f"Cannot decode image: {e}") from e
    return img


def has_alpha(img: Image.Image) -> bool:
    """Whether the image carries transparency."""
    return img.mode in ("RGBA", "LA", "PA") or (img.mode == "P" and "transparency" in img.info)


def flatten_on_white(img: Image.Image) -> Image.Image:
    """Composite the image onto an opaque white RGB canvas."""
    canvas = Image.new("RGB", img.size, (255, 255, 255))
    if has_alpha(img):
        rgba = img.convert("RGBA")
        canvas.paste(rgba, (0, 0), rgba)
    else:
        canvas.paste(img.convert("RGB"), (0, 0))
    return canvas


def encode_png(img: Image.Image) -> bytes:
    """Encode image as lossless PNG."""
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


def encode_jpeg(img: Image.Image, quality: int = 95) -> bytes:
    """Encode image as JPEG (RGB only)."""
    if img.mode != "RGB":
        img = flatten_on_white(img)
    buf = io.BytesIO()
    img.save(buf, format="JPEG", quality=quality)
    return buf.getvalue()


def to_data_url(data: bytes, media_type: str) -> str:
    """Encode bytes as a base64 data URL."""
    b64 = base64.b64encode(data).decode("ascii")
    return f"data:{media_type};base64,{b64}"
