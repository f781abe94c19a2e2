import logging
import os
import sys
from http.server import BaseHTTPRequestHandler
from typing import Mapping, Optional
from urllib.parse import parse_qs, urlparse

# Add parent directory to path for Vercel serverless environment
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import config
from card_generator import generate_card
from pipeline import BackgroundPipeline

logger = logging.getLogger(__name__)


def build_cover_from_query(
    params: Mapping[str, str],
    pipeline: Optional[BackgroundPipeline] = None,
) -> bytes:
    """
    Pure logic function that:
    - Receives the query parameters of a /dynamic-cover request
    - Returns PNG bytes for the cover card.

    Expected parameters (all optional):
    {
      "dest": "Paris",          # destination, default config.DEFAULT_DESTINATION
      "date": "10/05 - 17/05"   # date line under the destination
    }
    """
    destination = (params.get("dest") or "").strip() or config.DEFAULT_DESTINATION
    date_text = params.get("date") or ""
    return generate_card(destination, date_text, pipeline=pipeline)


# Vercel serverless function handler
class handler(BaseHTTPRequestHandler):
    """Vercel serverless function entrypoint for cover generation."""

    def do_GET(self):
        """Handle GET request to generate a cover card."""
        try:
            query = parse_qs(urlparse(self.path).query)
            params = {key: values[0] for key, values in query.items() if values}

            cover_bytes = build_cover_from_query(params)

            self.send_response(200)
            self.send_header("Content-Type", "image/png")
            self.send_header("Content-Length", str(len(cover_bytes)))
            self.end_headers()
            self.wfile.write(cover_bytes)

        except Exception:
            logger.exception("Cover rendering failed for %s", self.path)
            self.send_response(500)
            self.send_header("Content-Type", "text/plain; charset=utf-8")
            self.end_headers()
            self.wfile.write("Erro interno".encode("utf-8"))
