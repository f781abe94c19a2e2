"""
Unit tests for card rendering and image helpers.

Tests cover:
- fit_background cover-crop from encoded bytes
- Shrink-to-fit font sizing for long destinations
- compose_card / generate_card output
"""

import os
import sys
import unittest
from io import BytesIO

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from PIL import Image

from card_generator import compose_card, generate_card
from image_utils import fit_background, get_fitted_font, get_text_width, load_font
from pipeline import BackgroundPipeline


def create_test_image_bytes(size=(100, 100), color="blue", fmt="PNG") -> bytes:
    img = Image.new("RGB", size, color=color)
    buffer = BytesIO()
    img.save(buffer, format=fmt)
    return buffer.getvalue()


class StaticProvider:
    name = "static"

    def __init__(self, data):
        self.data = data
        self.calls = 0

    def generate(self, request):
        self.calls += 1
        return self.data


class TestFitBackground(unittest.TestCase):
    """Tests for fit_background."""

    def test_square_image_is_cropped_to_card(self):
        bg = fit_background(create_test_image_bytes((100, 100)), (1200, 630))
        self.assertEqual(bg.size, (1200, 630))
        self.assertEqual(bg.mode, "RGB")

    def test_tall_jpeg_is_cropped_to_card(self):
        bg = fit_background(create_test_image_bytes((300, 900), fmt="JPEG"), (1200, 630))
        self.assertEqual(bg.size, (1200, 630))

    def test_transparent_png_is_flattened(self):
        img = Image.new("RGBA", (160, 90), (255, 0, 0, 128))
        buffer = BytesIO()
        img.save(buffer, format="PNG")

        bg = fit_background(buffer.getvalue(), (1200, 630))

        self.assertEqual(bg.mode, "RGB")


class TestFittedFont(unittest.TestCase):
    """Tests for get_fitted_font."""

    def test_short_text_keeps_start_size(self):
        font = get_fitted_font("ROMA", 1100, start_size=70)
        self.assertEqual(font.size, 70)

    def test_long_text_shrinks(self):
        text = "SAO JOSE DOS CAMPOS E REGIAO METROPOLITANA DO VALE DO PARAIBA"
        font = get_fitted_font(text, 1100, start_size=70, min_size=30, step=5)
        self.assertLess(font.size, 70)
        self.assertGreaterEqual(font.size, 30)
        if font.size > 30:
            self.assertLessEqual(get_text_width(text, font), 1100)

    def test_never_below_min_size(self):
        font = get_fitted_font("X" * 500, 100, start_size=70, min_size=30, step=5)
        self.assertEqual(font.size, 30)

    def test_font_cache_returns_same_object(self):
        self.assertIs(load_font(33, "bold"), load_font(33, "bold"))


class TestComposeCard(unittest.TestCase):
    """Tests for compose_card."""

    def test_keeps_background_size(self):
        bg = Image.new("RGB", (1200, 630), "white")
        card = compose_card(bg, "Paris", "10/05 - 17/05")
        self.assertEqual(card.size, (1200, 630))

    def test_overlay_darkens_background(self):
        bg = Image.new("RGB", (1200, 630), "white")
        card = compose_card(bg, "Paris", "")
        # Bottom-right corner has no text on it
        r, g, b = card.getpixel((1190, 620))
        self.assertLess(r, 200)
        self.assertEqual(r, g)
        self.assertEqual(g, b)

    def test_does_not_modify_input(self):
        bg = Image.new("RGB", (1200, 630), "white")
        compose_card(bg, "Paris", "")
        self.assertEqual(bg.getpixel((1190, 620)), (255, 255, 255))

    def test_theme_override(self):
        bg = Image.new("RGB", (1200, 630), "white")
        card = compose_card(bg, "Paris", "", theme={"overlay_color": (0, 0, 0, 0)})
        self.assertEqual(card.getpixel((1190, 620)), (255, 255, 255))


class TestGenerateCard(unittest.TestCase):
    """Tests for generate_card."""

    def test_returns_png_of_card_size(self):
        provider = StaticProvider(create_test_image_bytes((640, 480), "green", "JPEG"))
        pipeline = BackgroundPipeline([provider])

        result = generate_card("Paris", "10/05", pipeline=pipeline)

        self.assertTrue(result.startswith(b'\x89PNG'))
        with Image.open(BytesIO(result)) as img:
            self.assertEqual(img.size, (1200, 630))

    def test_placeholder_background_when_no_providers(self):
        result = generate_card("Paris", "", pipeline=BackgroundPipeline([]))

        with Image.open(BytesIO(result)) as img:
            self.assertEqual(img.size, (1200, 630))

    def test_empty_destination_uses_default(self):
        provider = StaticProvider(create_test_image_bytes())
        pipeline = BackgroundPipeline([provider])

        generate_card("", "", pipeline=pipeline)

        self.assertIn("ia_img_viagem", pipeline.cache)

    def test_background_reused_across_cards(self):
        provider = StaticProvider(create_test_image_bytes())
        pipeline = BackgroundPipeline([provider])

        generate_card("Paris", "10/05", pipeline=pipeline)
        generate_card("paris", "11/05", pipeline=pipeline)

        self.assertEqual(provider.calls, 1)


if __name__ == "__main__":
    unittest.main()
