"""
ddripp dynamic cover generator

This module renders the Open Graph cover card for a trip: an acquired
background (AI-generated, stock photo or placeholder) darkened by an
overlay, with the ddripp logo, the destination, the trip date and a footer.
"""

import argparse
import logging
import os
from typing import Any, Dict, Optional

from PIL import Image, ImageDraw

import config
from image_utils import encode_png, fit_background, get_fitted_font, load_font
from pipeline import BackgroundPipeline, get_default_pipeline

logger = logging.getLogger(__name__)


def compose_card(
    bg_img: Image.Image,
    destination: str,
    date_text: str = "",
    theme: Optional[Dict[str, Any]] = None,
) -> Image.Image:
    """
    Draw the brand overlay and texts on top of a fitted background.

    Args:
        bg_img: Background already fitted to the card size
        destination: Destination name, drawn upper-cased
        date_text: Free-form date line; omitted when empty
        theme: Overrides for config.THEME keys

    Returns:
        The composed RGB card
    """
    theme = {**config.THEME, **(theme or {})}
    img = bg_img.convert("RGB")
    W, H = img.size
    draw = ImageDraw.Draw(img, "RGBA")

    # Darken the whole background so white text stays readable
    draw.rectangle([(0, 0), (W, H)], fill=theme["overlay_color"])

    # Logo
    logo_font = load_font(theme["logo_size"], "bold")
    draw.text(theme["logo_position"], theme["logo_text"], font=logo_font, fill=theme["logo_color"], anchor="ls")

    # Destination, shrunk until it fits
    title = destination.upper()
    title_font = get_fitted_font(
        title,
        W - theme["title_margin"],
        start_size=theme["title_size"],
        style="bold",
        min_size=theme["title_min_size"],
        step=theme["title_step"],
    )
    draw.text((W // 2, H // 2), title, font=title_font, fill=theme["text_color"], anchor="ms")

    if date_text:
        date_font = load_font(theme["date_size"], "regular")
        draw.text(
            (W // 2, H // 2 + theme["date_offset"]), date_text,
            font=date_font, fill=theme["text_color"], anchor="ms",
        )

    footer_font = load_font(theme["footer_size"], "italic")
    draw.text(
        (W // 2, H - theme["footer_margin"]), theme["footer_text"],
        font=footer_font, fill=theme["footer_color"], anchor="ms",
    )

    return img


def generate_card(
    destination: Optional[str],
    date_text: str = "",
    pipeline: Optional[BackgroundPipeline] = None,
) -> bytes:
    """
    Generate a single cover card and return it as PNG bytes.

    This is the main entry point for card rendering. The background comes
    from the acquisition pipeline, which always returns usable bytes.

    Args:
        destination: Destination name (default: config.DEFAULT_DESTINATION)
        date_text: Date line to print under the destination
        pipeline: Pipeline to use (default: the process-wide pipeline)

    Returns:
        PNG image bytes ready to be saved or transmitted
    """
    destination = (destination or "").strip() or config.DEFAULT_DESTINATION
    if pipeline is None:
        pipeline = get_default_pipeline()

    background_bytes = pipeline.acquire_background(destination)
    bg = fit_background(background_bytes, pipeline.size)
    img = compose_card(bg, destination, date_text or "")
    return encode_png(img)


def main():
    parser = argparse.ArgumentParser(description="Generate a ddripp trip cover card")
    parser.add_argument("--dest", default=config.DEFAULT_DESTINATION, help="Destination name")
    parser.add_argument("--date", default="", help="Date line printed under the destination")
    parser.add_argument("--out", default="output/cover.png", help="Output PNG path")
    args = parser.parse_args()

    logging.basicConfig(level=config.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    card_bytes = generate_card(args.dest, args.date)

    out_dir = os.path.dirname(args.out)
    if out_dir:
        os.makedirs(out_dir, exist_ok=True)
    with open(args.out, "wb") as f:
        f.write(card_bytes)
    logger.info("Generated file: %s", args.out)


if __name__ == "__main__":
    main()
