"""
Procedural placeholder background.

Used when every provider has failed. Rendering needs no network and no
external files, and the output depends only on (width, height) unless a
diagnostic banner is requested.
"""

import math
from functools import lru_cache
from typing import Optional, Tuple

from PIL import Image, ImageDraw

from image_utils import encode_png, get_fitted_font

GRADIENT_TOP = (15, 23, 42)       # #0f172a
GRADIENT_BOTTOM = (30, 41, 59)    # #1e293b
LINE_COLOR = (59, 130, 246, 70)   # brand blue, translucent
LINE_ROWS = 15
LINE_WIDTH = 2
_X_STEP = 4

BANNER_COLOR = (185, 28, 28, 230)
BANNER_HEIGHT = 56


def noise(x: float, row: int) -> float:
    """Vertical offset of the decorative line for column x in the given row."""
    return math.sin(x * 0.01 + row) * 50 + math.cos(x * 0.02) * 30


def _lerp(a: Tuple[int, int, int], b: Tuple[int, int, int], t: float) -> Tuple[int, int, int]:
    return tuple(int(round(a[i] + (b[i] - a[i]) * t)) for i in range(3))


def draw_placeholder(width: int, height: int) -> Image.Image:
    """Draw the dark gradient with the sinusoidal line pattern."""
    img = Image.new("RGB", (width, height), GRADIENT_TOP)
    draw = ImageDraw.Draw(img, "RGBA")

    for y in range(height):
        t = y / (height - 1) if height > 1 else 0.0
        draw.line([(0, y), (width, y)], fill=_lerp(GRADIENT_TOP, GRADIENT_BOTTOM, t))

    spacing = height / LINE_ROWS
    xs = list(range(0, width, _X_STEP)) + [width]
    for row in range(LINE_ROWS):
        base_y = row * spacing
        points = [(x, base_y + noise(x, row)) for x in xs]
        draw.line(points, fill=LINE_COLOR, width=LINE_WIDTH)

    return img


def _draw_banner(img: Image.Image, message: str) -> Image.Image:
    width, height = img.size
    draw = ImageDraw.Draw(img, "RGBA")
    draw.rectangle([(0, height - BANNER_HEIGHT), (width, height)], fill=BANNER_COLOR)
    font = get_fitted_font(message, width - 40, start_size=22, style="regular", min_size=10, step=2)
    draw.text((20, height - BANNER_HEIGHT // 2), message, font=font, fill=(255, 255, 255), anchor="lm")
    return img


@lru_cache(maxsize=8)
def _placeholder_png(width: int, height: int) -> bytes:
    return encode_png(draw_placeholder(width, height))


def render_placeholder(width: int, height: int, banner: Optional[str] = None) -> bytes:
    """
    Render the placeholder as PNG bytes.

    Args:
        width: Image width in pixels
        height: Image height in pixels
        banner: Optional diagnostic message drawn in a red strip at the bottom

    Returns:
        PNG bytes; identical for identical (width, height) when banner is None
    """
    if not banner:
        return _placeholder_png(width, height)
    return encode_png(_draw_banner(draw_placeholder(width, height), banner))
