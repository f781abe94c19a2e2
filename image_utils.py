"""
Image utility functions for cover card generation.

This module provides image processing utilities including:
- Font loading and caching
- Image orientation fixing
- Background image fitting and cropping
- Text measurement and shrink-to-fit font sizing
"""

import logging
import os
from io import BytesIO
from typing import Optional, Tuple

from PIL import Image, ImageFont

import config

logger = logging.getLogger(__name__)

FontType = ImageFont.FreeTypeFont

# ========= FONT LOADING =========
# Font cache to avoid reloading fonts repeatedly
# Cache stores: (size, style) -> font
_font_cache: dict[tuple[int, str], FontType] = {}

_FONT_CANDIDATES = {
    "bold": config.FONT_CANDIDATES_BOLD,
    "regular": config.FONT_CANDIDATES_REGULAR,
    "italic": config.FONT_CANDIDATES_ITALIC,
}


def load_font(size: int, style: str = "regular") -> FontType:
    """
    Load a font with caching for performance.

    Args:
        size: Font size in pixels
        style: One of "regular", "bold" or "italic"

    Returns:
        Loaded font object
    """
    cache_key = (size, style)

    # Return cached font if available
    if cache_key in _font_cache:
        return _font_cache[cache_key]

    candidates = _FONT_CANDIDATES.get(style, config.FONT_CANDIDATES_REGULAR)

    for path in candidates:
        if os.path.isfile(path):
            try:
                font = ImageFont.truetype(path, size=size)
                _font_cache[cache_key] = font
                return font
            except OSError:
                continue

    # Pillow's bundled font scales when FreeType is available
    logger.debug("No %s font found in %s, using Pillow default", style, candidates)
    font = ImageFont.load_default(size=size)
    _font_cache[cache_key] = font
    return font


def clear_font_cache() -> None:
    _font_cache.clear()


# ========= IMAGE HELPERS =========
# EXIF orientation tag and rotation values
_EXIF_ORIENTATION_TAG = 274
_ORIENTATION_ROTATIONS = {
    3: 180,
    6: 270,
    8: 90,
}


def fix_image_orientation(img: Image.Image) -> Image.Image:
    """
    Fix image orientation based on EXIF data.

    Stock photos are often stored in the camera's orientation and rely on
    EXIF metadata to indicate how the image should be rotated for display.

    Args:
        img: PIL Image object

    Returns:
        Image rotated to correct orientation
    """
    try:
        orientation = img.getexif().get(_EXIF_ORIENTATION_TAG)
        rotation = _ORIENTATION_ROTATIONS.get(orientation)
        if rotation:
            img = img.rotate(rotation, expand=True)
    except (AttributeError, KeyError, TypeError):
        pass
    return img


def fit_background(
    image_bytes: bytes,
    size: Tuple[int, int] = config.IMG_SIZE,
    crop_position: Optional[Tuple[float, float]] = None
) -> Image.Image:
    """
    Decode image bytes and resize them to fill the target size.

    Args:
        image_bytes: Encoded image (PNG, JPEG, ...)
        size: Target size as (width, height)
        crop_position: Tuple of (x, y) as percentages (0.0 to 1.0) where
                       (0.5, 0.5) is center. Default is center.

    Returns:
        Resized and cropped RGB image
    """
    base_w, base_h = size
    with Image.open(BytesIO(image_bytes)) as src:
        img = fix_image_orientation(src)
        img = img.convert("RGB")

    # Scale to cover the target size
    scale = max(base_w / img.width, base_h / img.height)
    new_w = max(base_w, int(round(img.width * scale)))
    new_h = max(base_h, int(round(img.height * scale)))
    img = img.resize((new_w, new_h), Image.LANCZOS)

    crop_x, crop_y = crop_position if crop_position else (0.5, 0.5)
    crop_x = max(0.0, min(1.0, crop_x))
    crop_y = max(0.0, min(1.0, crop_y))

    left = int((new_w - base_w) * crop_x)
    top = int((new_h - base_h) * crop_y)

    return img.crop((left, top, left + base_w, top + base_h))


def get_text_width(text: str, font: FontType) -> int:
    """Get the width of text rendered with the given font, in pixels."""
    bbox = font.getbbox(text)
    return int(bbox[2] - bbox[0])


def get_fitted_font(
    text: str,
    max_width: int,
    start_size: int,
    style: str = "bold",
    min_size: int = 30,
    step: int = 5,
) -> FontType:
    """
    Get a font that fits the text within max_width.

    Starts at start_size and shrinks by step while the text is too wide,
    stopping at min_size even if the text still overflows.
    """
    size = start_size
    font = load_font(size, style)
    while get_text_width(text, font) > max_width and size > min_size:
        size = max(min_size, size - step)
        font = load_font(size, style)
    return font


def encode_png(img: Image.Image) -> bytes:
    """Save an image to an in-memory PNG and return the bytes."""
    buffer = BytesIO()
    img.save(buffer, format="PNG", optimize=True)
    return buffer.getvalue()
