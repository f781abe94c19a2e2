"""
Configuration module for the ddripp dynamic cover service.

This module centralizes all configuration values and supports environment variable overrides.
API keys and credentials are only ever read from the environment.
"""

import os
from typing import Any, Dict, List, Optional

# ========= IMAGE CONFIGURATION =========

def _get_img_size() -> tuple[int, int]:
    """Get image size from environment or use default."""
    width = int(os.getenv("IMG_WIDTH", "1200"))
    height = int(os.getenv("IMG_HEIGHT", "630"))
    return (width, height)

IMG_SIZE = _get_img_size()
IMAGE_ASPECT_RATIO = os.getenv("IMAGE_ASPECT_RATIO", "16:9")

# ========= CARD THEME =========

THEME: Dict[str, Any] = {
    "logo_text": os.getenv("THEME_LOGO_TEXT", "ddripp"),
    "logo_color": "#3B82F6",
    "logo_size": 40,
    "logo_position": (50, 80),
    "text_color": (255, 255, 255),
    "overlay_color": (0, 0, 0, 102),  # rgba(0, 0, 0, 0.4)
    "title_size": 70,
    "title_min_size": 30,
    "title_step": 5,
    "title_margin": 100,
    "date_size": 30,
    "date_offset": 60,
    "footer_text": os.getenv("THEME_FOOTER_TEXT", "Roteiro Personalizado via Gemini AI"),
    "footer_size": 20,
    "footer_color": (255, 255, 255, 178),  # rgba(255, 255, 255, 0.7)
    "footer_margin": 40,
}

# ========= FONT CONFIGURATION =========

def _get_font_candidates(env_var: str, default: List[str]) -> List[str]:
    """Get font candidates from environment or use defaults."""
    env_value = os.getenv(env_var)
    if env_value:
        # Split by comma and strip whitespace
        return [f.strip() for f in env_value.split(",")]
    return default

_DEJAVU_DIR = "/usr/share/fonts/truetype/dejavu"

FONT_CANDIDATES_BOLD = _get_font_candidates(
    "FONT_CANDIDATES_BOLD",
    ["DejaVuSans-Bold.ttf", os.path.join(_DEJAVU_DIR, "DejaVuSans-Bold.ttf")]
)

FONT_CANDIDATES_REGULAR = _get_font_candidates(
    "FONT_CANDIDATES_REGULAR",
    ["DejaVuSans.ttf", os.path.join(_DEJAVU_DIR, "DejaVuSans.ttf")]
)

FONT_CANDIDATES_ITALIC = _get_font_candidates(
    "FONT_CANDIDATES_ITALIC",
    ["DejaVuSans-Oblique.ttf", os.path.join(_DEJAVU_DIR, "DejaVuSans-Oblique.ttf")]
)

# ========= CACHE CONFIGURATION =========

CACHE_NAMESPACE = os.getenv("CACHE_NAMESPACE", "ia_img")
DEFAULT_DESTINATION = os.getenv("DEFAULT_DESTINATION", "Viagem")

# ========= PROVIDER CONFIGURATION =========

def _get_provider_order() -> List[str]:
    """Get the provider fallback order from environment or use default."""
    raw = os.getenv("IMAGE_PROVIDERS", "imagen,imagen_fallback,vertex,unsplash")
    return [name.strip() for name in raw.split(",") if name.strip()]

IMAGE_PROVIDERS = _get_provider_order()

PROVIDER_TIMEOUT = float(os.getenv("PROVIDER_TIMEOUT", "9"))  # Seconds per provider

PROMPT_TEMPLATE = os.getenv(
    "PROMPT_TEMPLATE",
    "{destination}, realistic, cinematic lighting, 8k, high quality travel photography",
)
STOCK_QUERY_TEMPLATE = os.getenv("STOCK_QUERY_TEMPLATE", "{destination} travel")

IMAGEN_MODEL = os.getenv("GOOGLE_IMAGEN_MODEL", "imagen-3.0-generate-001")
IMAGEN_FALLBACK_MODEL = os.getenv("GOOGLE_IMAGEN_FALLBACK_MODEL", "imagen-3.0-fast-generate-001")
VERTEX_MODEL = os.getenv("GOOGLE_VERTEX_MODEL", IMAGEN_MODEL)


def get_google_api_key() -> Optional[str]:
    """Get the Generative Language API key, if configured."""
    return os.getenv("GOOGLE_API_KEY") or None


def get_google_project() -> Optional[str]:
    """Get the Google Cloud project id used by the Vertex provider."""
    return os.getenv("GOOGLE_CLOUD_PROJECT") or None


def get_google_location() -> str:
    return os.getenv("GOOGLE_CLOUD_LOCATION", "us-central1")


def get_google_credentials_json() -> Optional[str]:
    """Get the raw service-account JSON blob, if configured."""
    return os.getenv("GOOGLE_CREDENTIALS_JSON") or None


def get_unsplash_access_key() -> Optional[str]:
    return os.getenv("UNSPLASH_ACCESS_KEY") or None


# Draw a banner describing provider failures on the placeholder
PLACEHOLDER_DIAGNOSTICS = os.getenv("PLACEHOLDER_DIAGNOSTICS", "0").lower() in ("1", "true", "yes")

# ========= SHARE PAGE CONFIGURATION =========

APP_URL = os.getenv("APP_URL", "https://eduardozbu-ddripp.github.io/ddripp-server/")
SITE_NAME = os.getenv("SITE_NAME", "ddripp")

# ========= SERVER CONFIGURATION =========

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
PORT = int(os.getenv("PORT", "3000"))
