"""
Unit tests for the procedural placeholder background.

Tests cover:
- Output dimensions and PNG encoding
- Determinism for identical (width, height)
- The sinusoidal line formula
- The optional diagnostic banner
"""

import math
import os
import sys
import unittest
from io import BytesIO

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from PIL import Image

from placeholder import GRADIENT_BOTTOM, GRADIENT_TOP, draw_placeholder, noise, render_placeholder


class TestNoise(unittest.TestCase):
    """Tests for the line offset formula."""

    def test_origin(self):
        self.assertAlmostEqual(noise(0, 0), 30.0)

    def test_formula(self):
        x, row = 250, 7
        expected = math.sin(x * 0.01 + row) * 50 + math.cos(x * 0.02) * 30
        self.assertAlmostEqual(noise(x, row), expected)

    def test_bounded_amplitude(self):
        for x in range(0, 1200, 37):
            for row in range(15):
                self.assertLessEqual(abs(noise(x, row)), 80.0)


class TestRenderPlaceholder(unittest.TestCase):
    """Tests for render_placeholder."""

    def test_png_with_requested_size(self):
        result = render_placeholder(1200, 630)

        self.assertTrue(result.startswith(b'\x89PNG'))
        with Image.open(BytesIO(result)) as img:
            self.assertEqual(img.size, (1200, 630))

    def test_deterministic(self):
        self.assertEqual(render_placeholder(1200, 630), render_placeholder(1200, 630))

    def test_different_sizes_differ(self):
        with Image.open(BytesIO(render_placeholder(320, 200))) as img:
            self.assertEqual(img.size, (320, 200))

    def test_gradient_endpoints(self):
        img = draw_placeholder(200, 300)
        # At x=199 no decorative line crosses the first or last pixel row
        self.assertEqual(img.getpixel((199, 0)), GRADIENT_TOP)
        self.assertEqual(img.getpixel((199, 299)), GRADIENT_BOTTOM)

    def test_banner_changes_output(self):
        plain = render_placeholder(1200, 630)
        with_banner = render_placeholder(1200, 630, banner="Erro: imagen: auth_missing")

        self.assertNotEqual(plain, with_banner)
        with Image.open(BytesIO(with_banner)) as img:
            self.assertEqual(img.size, (1200, 630))
            # Banner strip is red at the bottom-right corner
            r, g, b = img.convert("RGB").getpixel((1195, 625))
            self.assertGreater(r, 150)
            self.assertLess(g, 80)


if __name__ == "__main__":
    unittest.main()
