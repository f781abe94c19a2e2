"""
Background acquisition pipeline.

Given a destination, return image bytes suitable as a card background:

1. Normalize the destination and build the cache key.
2. On a cache hit, return the stored bytes without any network I/O.
3. Otherwise try each provider in order; the first success wins.
4. If every provider fails, render the procedural placeholder.
5. Cache the result, then return it.

The pipeline never raises provider failures to its caller: the card
renderer must always be able to produce a PNG.
"""

import logging
from functools import lru_cache
from typing import List, Optional, Sequence, Tuple

import config
from errors import MalformedResponse, ProviderError
from image_cache import BackgroundCache, InMemoryBackgroundCache
from placeholder import render_placeholder
from providers import ImageProvider, build_providers, build_request

logger = logging.getLogger(__name__)


def normalize_destination(destination: Optional[str]) -> str:
    """Trim and lower-case a destination; empty input maps to the default destination."""
    normalized = (destination or "").strip().lower()
    return normalized or config.DEFAULT_DESTINATION.strip().lower()


def cache_key(destination: Optional[str], namespace: str = config.CACHE_NAMESPACE) -> str:
    """Stable cache key for a destination within a namespace."""
    return f"{namespace}_{normalize_destination(destination)}"


class BackgroundPipeline:
    """Cache-fronted provider fallback chain with a placeholder of last resort."""

    def __init__(
        self,
        providers: Sequence[ImageProvider],
        cache: Optional[BackgroundCache] = None,
        size: Tuple[int, int] = config.IMG_SIZE,
        diagnostic_banner: bool = False,
    ):
        self.providers: List[ImageProvider] = list(providers)
        self.cache: BackgroundCache = cache if cache is not None else InMemoryBackgroundCache()
        self.size = size
        self.diagnostic_banner = diagnostic_banner

    def acquire_background(
        self,
        destination: Optional[str],
        cache_namespace: str = config.CACHE_NAMESPACE,
    ) -> bytes:
        """
        Return background image bytes for a destination.

        Args:
            destination: Free-text destination name (e.g. "Paris")
            cache_namespace: Prefix separating independent caches

        Returns:
            Encoded image bytes from the first successful provider, or the
            placeholder PNG when every provider failed
        """
        key = cache_key(destination, cache_namespace)
        cached = self.cache.get(key)
        if cached is not None:
            logger.info("Cache hit: %s", key)
            return cached

        logger.info("Cache miss: %s, trying %d provider(s)", key, len(self.providers))
        label = (destination or "").strip() or config.DEFAULT_DESTINATION
        request = build_request(label, size=self.size)

        failures: List[str] = []
        image_bytes = None
        for provider in self.providers:
            try:
                data = provider.generate(request)
                if not isinstance(data, (bytes, bytearray)):
                    raise MalformedResponse(provider.name, f"returned {type(data).__name__} instead of image bytes")
                if not data:
                    raise MalformedResponse(provider.name, "returned an empty payload")
            except ProviderError as e:
                failures.append(f"{provider.name}: {e.kind}")
                logger.warning("Provider %s failed (%s): %s", provider.name, e.kind, e.message)
                continue
            except Exception as e:
                failures.append(f"{provider.name}: unexpected")
                logger.exception("Provider %s raised unexpectedly: %s", provider.name, e)
                continue
            image_bytes = bytes(data)
            logger.info("Provider %s produced %d bytes for %s", provider.name, len(image_bytes), key)
            break

        if image_bytes is None:
            logger.warning("All providers failed for %s, using placeholder", key)
            banner = None
            if self.diagnostic_banner:
                banner = "Erro: " + ("; ".join(failures) if failures else "no providers configured")
            image_bytes = render_placeholder(self.size[0], self.size[1], banner=banner)

        self.cache.set(key, image_bytes)
        return image_bytes


@lru_cache(maxsize=1)
def get_default_pipeline() -> BackgroundPipeline:
    """The process-wide pipeline built from configuration."""
    return BackgroundPipeline(
        build_providers(config.IMAGE_PROVIDERS),
        cache=InMemoryBackgroundCache(),
        size=config.IMG_SIZE,
        diagnostic_banner=config.PLACEHOLDER_DIAGNOSTICS,
    )


def acquire_background(destination: Optional[str], cache_namespace: str = config.CACHE_NAMESPACE) -> bytes:
    """Acquire a background through the default pipeline."""
    return get_default_pipeline().acquire_background(destination, cache_namespace)
