import html
import json
import logging
import os
import sys
from http.server import BaseHTTPRequestHandler
from typing import Mapping, Optional
from urllib.parse import parse_qs, quote, urlencode, urlparse

# Add parent directory to path for Vercel serverless environment
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import config

logger = logging.getLogger(__name__)

# Placeholders avoid clashing with CSS braces in the template
SHARE_TEMPLATE = """<!DOCTYPE html>
<html lang="pt-BR">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <meta property="og:site_name" content="SITE_NAME_PLACEHOLDER">
    <meta property="og:title" content="PAGE_TITLE_PLACEHOLDER">
    <meta property="og:description" content="PAGE_DESC_PLACEHOLDER">
    <meta property="og:image" content="IMAGE_URL_PLACEHOLDER">
    <meta property="og:image:width" content="IMAGE_WIDTH_PLACEHOLDER">
    <meta property="og:image:height" content="IMAGE_HEIGHT_PLACEHOLDER">
    <meta name="twitter:card" content="summary_large_image">
    <title>PAGE_TITLE_PLACEHOLDER</title>
    <style>
        body { font-family: sans-serif; display: flex; flex-direction: column; align-items: center; justify-content: center; height: 100vh; margin: 0; background: #f0f9ff; color: #0c4a6e; }
        .loader { border: 4px solid #f3f3f3; border-top: 4px solid #3B82F6; border-radius: 50%; width: 40px; height: 40px; animation: spin 1s linear infinite; }
        @keyframes spin { 0% { transform: rotate(0deg); } 100% { transform: rotate(360deg); } }
    </style>
</head>
<body>
    <div class="loader"></div>
    <h2 style="margin-top:20px">Gerando visualização...</h2>
    <script>
        setTimeout(function () {
            window.location.href = REDIRECT_URL_PLACEHOLDER;
        }, 500);
    </script>
</body>
</html>
"""


def request_base_url(headers: Mapping[str, str], default_scheme: str, host: str) -> str:
    """Origin of the incoming request, honouring a proxy's X-Forwarded-Proto."""
    proto = (headers.get("x-forwarded-proto") or default_scheme or "https").split(",")[0].strip()
    return f"{proto}://{host}"


def build_share_page(params: Mapping[str, str], base_url: str) -> str:
    """
    Pure logic function that:
    - Receives the query parameters of a /share request and the request origin
    - Returns the HTML page with Open Graph tags and the front-end redirect.

    Expected parameters (all optional):
    {
      "title": "Férias na Europa",
      "date": "10/05 - 17/05",
      "dest": "Paris",
      "data": "..."             # opaque trip payload forwarded to the app
    }
    """
    title = params.get("title") or ""
    date_text = params.get("date") or ""
    dest = params.get("dest") or ""
    data = params.get("data") or ""

    page_title = f"Roteiro: {title}" if title else f"Meu Roteiro {config.SITE_NAME}"
    page_desc = f"Confira os detalhes da viagem para {dest or 'um destino incrível'}."

    image_url = f"{base_url.rstrip('/')}/dynamic-cover?{urlencode({'dest': dest, 'date': date_text})}"
    redirect_url = f"{config.APP_URL}?data={quote(data, safe='')}"
    redirect_js = json.dumps(redirect_url).replace("</", "<\\/")

    width, height = config.IMG_SIZE
    return (
        SHARE_TEMPLATE
        .replace("SITE_NAME_PLACEHOLDER", html.escape(config.SITE_NAME, quote=True))
        .replace("PAGE_TITLE_PLACEHOLDER", html.escape(page_title, quote=True))
        .replace("PAGE_DESC_PLACEHOLDER", html.escape(page_desc, quote=True))
        .replace("IMAGE_URL_PLACEHOLDER", html.escape(image_url, quote=True))
        .replace("IMAGE_WIDTH_PLACEHOLDER", str(width))
        .replace("IMAGE_HEIGHT_PLACEHOLDER", str(height))
        .replace("REDIRECT_URL_PLACEHOLDER", redirect_js)
    )


# Vercel serverless function handler
class handler(BaseHTTPRequestHandler):
    """Vercel serverless function entrypoint for the share page."""

    def do_GET(self):
        try:
            query = parse_qs(urlparse(self.path).query)
            params = {key: values[0] for key, values in query.items() if values}
            base_url = request_base_url(self.headers, "https", self.headers.get("host", "localhost"))

            html_content = build_share_page(params, base_url)

            self.send_response(200)
            self.send_header("Content-Type", "text/html; charset=utf-8")
            self.end_headers()
            self.wfile.write(html_content.encode("utf-8"))
        except Exception:
            logger.exception("Share page failed for %s", self.path)
            self.send_response(500)
            self.send_header("Content-Type", "text/plain; charset=utf-8")
            self.end_headers()
            self.wfile.write("Erro interno".encode("utf-8"))
