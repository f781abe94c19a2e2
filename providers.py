"""
Image providers for background acquisition.

Each provider turns a ``ProviderRequest`` into raw image bytes or raises one
of the ``errors.ProviderError`` kinds. Providers are plain objects sharing
one capability (``generate``) so the pipeline can try them uniformly, in the
order configured by ``config.IMAGE_PROVIDERS``.

Wire contract of the Imagen endpoints:
    POST {"instances": [{"prompt": ...}],
          "parameters": {"sampleCount": 1, "aspectRatio": "16:9"}}
    -> {"predictions": [{"bytesBase64Encoded": "...", "mimeType": "image/png"}]}
"""

import base64
import binascii
import json
import logging
import socket
import threading
import time
from dataclasses import dataclass
from io import BytesIO
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

import google.auth.exceptions
import requests
from google.auth.transport.requests import Request as GoogleAuthRequest
from google.oauth2 import service_account
from PIL import Image

import config
from credentials import STAGE_DIRECT, parse_service_account
from errors import (
    AuthMissing,
    CredentialMalformed,
    MalformedResponse,
    ProviderTimeout,
    RequestRejected,
)

logger = logging.getLogger(__name__)

GENERATIVE_LANGUAGE_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:predict"
VERTEX_URL = (
    "https://{location}-aiplatform.googleapis.com/v1/projects/{project}"
    "/locations/{location}/publishers/google/models/{model}:predict"
)
UNSPLASH_SEARCH_URL = "https://api.unsplash.com/search/photos"
CLOUD_PLATFORM_SCOPE = "https://www.googleapis.com/auth/cloud-platform"

USER_AGENT = "ddripp-cover/1.0"
_CHUNK_SIZE = 64 * 1024
_ERROR_BODY_LIMIT = 300


# ========= REQUEST MODEL =========

@dataclass(frozen=True)
class ProviderRequest:
    """What every provider receives: the destination plus a fixed output shape."""

    destination: str
    prompt: str
    query: str
    size: Tuple[int, int] = (1200, 630)
    aspect_ratio: str = "16:9"


def build_request(
    destination: str,
    size: Tuple[int, int] = config.IMG_SIZE,
    aspect_ratio: str = config.IMAGE_ASPECT_RATIO,
) -> ProviderRequest:
    """Interpolate the destination into the prompt and stock-photo query templates."""
    return ProviderRequest(
        destination=destination,
        prompt=config.PROMPT_TEMPLATE.format(destination=destination),
        query=config.STOCK_QUERY_TEMPLATE.format(destination=destination),
        size=size,
        aspect_ratio=aspect_ratio,
    )


# ========= DEADLINES =========

class Deadline:
    """Wall-clock budget shared by every HTTP call a provider makes."""

    def __init__(self, provider: str, seconds: float):
        self.provider = provider
        self.seconds = seconds
        self.expires_at = time.monotonic() + seconds

    def expired(self) -> bool:
        return time.monotonic() >= self.expires_at

    def remaining(self) -> float:
        """Seconds left; raises ProviderTimeout once the budget is spent."""
        left = self.expires_at - time.monotonic()
        if left <= 0:
            raise ProviderTimeout(self.provider, f"no response within {self.seconds:g}s")
        return left


class _DeadlineAuthRequest(GoogleAuthRequest):
    """google-auth transport that applies our deadline to token requests."""

    def __init__(self, session: requests.Session, timeout: float):
        super().__init__(session=session)
        self._timeout = timeout

    def __call__(self, url, method="GET", body=None, headers=None, timeout=None, **kwargs):
        return super().__call__(
            url, method=method, body=body, headers=headers, timeout=self._timeout, **kwargs
        )


# ========= HELPERS =========

def _error_message(body: bytes) -> str:
    """Extract a readable message from a JSON or plain-text error body."""
    text = body.decode("utf-8", errors="replace").strip()
    try:
        payload = json.loads(text)
    except ValueError:
        return text[:_ERROR_BODY_LIMIT] or "empty response body"
    if isinstance(payload, dict):
        error = payload.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if error:
            return str(error)
        if payload.get("errors"):
            return str(payload["errors"])
    return text[:_ERROR_BODY_LIMIT]


def _is_timeout(exc: BaseException) -> bool:
    if isinstance(exc, requests.Timeout):
        return True
    # Read timeouts while streaming surface as ConnectionError
    return "timed out" in str(exc).lower()


def _abort_response(response: requests.Response) -> None:
    """
    Cut off a streamed response from another thread.

    Closing the response alone does not wake a thread blocked in recv(), so
    the underlying socket is shut down first; the blocked read then sees EOF.
    """
    connection = getattr(response.raw, "connection", None)
    sock = getattr(connection, "sock", None)
    if sock is None:
        response.close()
        return
    try:
        sock.shutdown(socket.SHUT_RDWR)
    except OSError as e:
        # Already closed by the reading thread
        logger.debug("Socket shutdown skipped: %s", e)


def ensure_image(provider: str, data: bytes) -> bytes:
    """Check that the bytes decode as an image; raise MalformedResponse otherwise."""
    if not data:
        raise MalformedResponse(provider, "empty image payload")
    try:
        with Image.open(BytesIO(data)) as img:
            img.verify()
    except (OSError, SyntaxError, ValueError) as e:
        raise MalformedResponse(provider, f"payload is not a decodable image: {e}") from e
    return data


# ========= PROVIDERS =========

class ImageProvider:
    """Base class: one named source of background images."""

    def __init__(self, name: str, timeout: float, session: Optional[requests.Session] = None):
        self.name = name
        self.timeout = timeout
        self.session = session if session is not None else requests.Session()

    def generate(self, request: ProviderRequest) -> bytes:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"

    def _fetch(self, method: str, url: str, deadline: Deadline, **kwargs: Any) -> bytes:
        """
        Perform one HTTP call within the deadline and return the body.

        The body is streamed under a watchdog timer. When the deadline passes
        the watchdog shuts the socket down, which wakes a read blocked on a
        server that keeps trickling bytes, and the call fails with
        ProviderTimeout.
        """
        left = deadline.remaining()
        headers = {"User-Agent": USER_AGENT}
        headers.update(kwargs.pop("headers", None) or {})
        try:
            response = self.session.request(
                method, url, headers=headers, timeout=(left, left), stream=True, **kwargs
            )
        except requests.RequestException as e:
            if _is_timeout(e):
                raise ProviderTimeout(self.name, f"no response within {deadline.seconds:g}s") from e
            raise RequestRejected(self.name, f"transport error: {e}") from e

        aborted = threading.Event()

        def abort() -> None:
            aborted.set()
            logger.debug("Deadline passed for %s, aborting %s", self.name, url)
            _abort_response(response)

        watchdog = threading.Timer(max(deadline.expires_at - time.monotonic(), 0.0), abort)
        watchdog.daemon = True
        watchdog.start()
        too_slow = f"response not completed within {deadline.seconds:g}s"
        try:
            chunks = []
            for chunk in response.iter_content(chunk_size=_CHUNK_SIZE):
                if deadline.expired():
                    raise ProviderTimeout(self.name, too_slow)
                chunks.append(chunk)
            body = b"".join(chunks)
        except requests.RequestException as e:
            if aborted.is_set() or _is_timeout(e):
                raise ProviderTimeout(self.name, too_slow) from e
            raise RequestRejected(self.name, f"transport error: {e}") from e
        except (OSError, ValueError) as e:
            # Reads racing the watchdog can fail below requests' wrappers
            if aborted.is_set():
                raise ProviderTimeout(self.name, too_slow) from e
            raise
        finally:
            watchdog.cancel()
            response.close()

        # A shut-down socket may also end the body early without an error
        if aborted.is_set():
            raise ProviderTimeout(self.name, too_slow)

        status = response.status_code
        if not 200 <= status < 300:
            raise RequestRejected(self.name, f"HTTP {status}: {_error_message(body)}", status_code=status)
        return body

    def _fetch_json(self, method: str, url: str, deadline: Deadline, **kwargs: Any) -> Any:
        body = self._fetch(method, url, deadline, **kwargs)
        try:
            return json.loads(body)
        except ValueError as e:
            raise MalformedResponse(self.name, f"response is not JSON: {e}") from e


class _ImagenPredictMixin:
    """Shared Imagen ``:predict`` payload building and response decoding."""

    name: str

    @staticmethod
    def _predict_payload(request: ProviderRequest) -> Dict[str, Any]:
        return {
            "instances": [{"prompt": request.prompt}],
            "parameters": {"sampleCount": 1, "aspectRatio": request.aspect_ratio},
        }

    def _decode_predictions(self, payload: Any) -> bytes:
        predictions = payload.get("predictions") if isinstance(payload, dict) else None
        if not predictions or not isinstance(predictions, list):
            raise MalformedResponse(self.name, "response has no predictions (prompt may have been filtered)")
        first = predictions[0]
        encoded = first.get("bytesBase64Encoded") if isinstance(first, dict) else None
        if not encoded:
            reason = first.get("raiFilteredReason") if isinstance(first, dict) else None
            raise MalformedResponse(self.name, reason or "prediction has no bytesBase64Encoded field")
        try:
            return base64.b64decode(encoded, validate=True)
        except (binascii.Error, ValueError) as e:
            raise MalformedResponse(self.name, f"invalid base64 image payload: {e}") from e


class ImagenApiKeyProvider(_ImagenPredictMixin, ImageProvider):
    """Imagen through the Generative Language API, authenticated by a static API key."""

    def __init__(
        self,
        name: str,
        model: str,
        api_key: Optional[str],
        timeout: float = config.PROVIDER_TIMEOUT,
        session: Optional[requests.Session] = None,
    ):
        super().__init__(name, timeout, session)
        self.model = model
        self._api_key = api_key

    def generate(self, request: ProviderRequest) -> bytes:
        if not self._api_key:
            raise AuthMissing(self.name, "GOOGLE_API_KEY is not set")
        deadline = Deadline(self.name, self.timeout)
        logger.info("Asking %s (%s) to paint %r", self.name, self.model, request.destination)
        payload = self._fetch_json(
            "POST",
            GENERATIVE_LANGUAGE_URL.format(model=self.model),
            deadline,
            json=self._predict_payload(request),
            # Header auth keeps the key out of URLs and exception messages
            headers={"x-goog-api-key": self._api_key},
        )
        return ensure_image(self.name, self._decode_predictions(payload))


class VertexServiceAccountProvider(_ImagenPredictMixin, ImageProvider):
    """
    Imagen through Vertex AI, authenticated with short-lived OAuth tokens.

    The service-account blob is parsed (and any CredentialMalformed raised)
    before any network call. Tokens are minted with google-auth and reused
    until they expire.
    """

    def __init__(
        self,
        name: str,
        model: str,
        credentials_json: Optional[str],
        project: Optional[str] = None,
        location: str = "us-central1",
        timeout: float = config.PROVIDER_TIMEOUT,
        session: Optional[requests.Session] = None,
    ):
        super().__init__(name, timeout, session)
        self.model = model
        self.location = location
        self._credentials_json = credentials_json
        self._project = project
        self._credentials: Optional[service_account.Credentials] = None

    def _load_credentials(self) -> service_account.Credentials:
        if self._credentials is None:
            parsed = parse_service_account(self._credentials_json, self.name)
            if parsed.stage != STAGE_DIRECT:
                logger.warning("%s credential JSON needed sanitization before parsing", self.name)
            try:
                credentials = service_account.Credentials.from_service_account_info(
                    parsed.info, scopes=[CLOUD_PLATFORM_SCOPE]
                )
            except (ValueError, KeyError) as e:
                raise CredentialMalformed(self.name, f"invalid service-account key: {e}") from e
            if not self._project:
                self._project = parsed.info.get("project_id")
            self._credentials = credentials
        return self._credentials

    def _access_token(self, credentials: service_account.Credentials, deadline: Deadline) -> str:
        if not credentials.valid:
            auth_request = _DeadlineAuthRequest(self.session, deadline.remaining())
            try:
                credentials.refresh(auth_request)
            except google.auth.exceptions.RefreshError as e:
                raise RequestRejected(self.name, f"token request rejected: {e}") from e
            except google.auth.exceptions.TransportError as e:
                if e.__cause__ is not None and _is_timeout(e.__cause__):
                    raise ProviderTimeout(self.name, f"token request exceeded {deadline.seconds:g}s") from e
                raise RequestRejected(self.name, f"token request failed: {e}") from e
        return credentials.token

    def generate(self, request: ProviderRequest) -> bytes:
        credentials = self._load_credentials()
        if not self._project:
            raise AuthMissing(self.name, "GOOGLE_CLOUD_PROJECT is not set and credential has no project_id")

        deadline = Deadline(self.name, self.timeout)
        token = self._access_token(credentials, deadline)
        logger.info("Asking %s (%s) to paint %r", self.name, self.model, request.destination)
        payload = self._fetch_json(
            "POST",
            VERTEX_URL.format(location=self.location, project=self._project, model=self.model),
            deadline,
            json=self._predict_payload(request),
            headers={"Authorization": f"Bearer {token}"},
        )
        return ensure_image(self.name, self._decode_predictions(payload))


class UnsplashProvider(ImageProvider):
    """Stock-photo fallback: search Unsplash for the destination and download the top hit."""

    def __init__(
        self,
        name: str,
        access_key: Optional[str],
        timeout: float = config.PROVIDER_TIMEOUT,
        session: Optional[requests.Session] = None,
    ):
        super().__init__(name, timeout, session)
        self._access_key = access_key

    def generate(self, request: ProviderRequest) -> bytes:
        if not self._access_key:
            raise AuthMissing(self.name, "UNSPLASH_ACCESS_KEY is not set")
        deadline = Deadline(self.name, self.timeout)
        logger.info("Searching %s for %r", self.name, request.query)
        payload = self._fetch_json(
            "GET",
            UNSPLASH_SEARCH_URL,
            deadline,
            params={"query": request.query, "per_page": 1, "orientation": "landscape"},
            headers={"Authorization": f"Client-ID {self._access_key}", "Accept-Version": "v1"},
        )

        results = payload.get("results") if isinstance(payload, dict) else None
        if not results:
            raise MalformedResponse(self.name, f"no photos found for {request.query!r}")
        urls = results[0].get("urls") if isinstance(results[0], dict) else None
        photo_url = (urls or {}).get("regular") or (urls or {}).get("full")
        if not photo_url:
            raise MalformedResponse(self.name, "search result has no photo URL")

        return ensure_image(self.name, self._fetch("GET", photo_url, deadline))


# ========= REGISTRY =========

ProviderFactory = Callable[[], ImageProvider]

PROVIDER_FACTORIES: Dict[str, ProviderFactory] = {
    "imagen": lambda: ImagenApiKeyProvider(
        "imagen", config.IMAGEN_MODEL, config.get_google_api_key(), config.PROVIDER_TIMEOUT
    ),
    "imagen_fallback": lambda: ImagenApiKeyProvider(
        "imagen_fallback", config.IMAGEN_FALLBACK_MODEL, config.get_google_api_key(), config.PROVIDER_TIMEOUT
    ),
    "vertex": lambda: VertexServiceAccountProvider(
        "vertex",
        config.VERTEX_MODEL,
        config.get_google_credentials_json(),
        project=config.get_google_project(),
        location=config.get_google_location(),
        timeout=config.PROVIDER_TIMEOUT,
    ),
    "unsplash": lambda: UnsplashProvider(
        "unsplash", config.get_unsplash_access_key(), config.PROVIDER_TIMEOUT
    ),
}


def build_providers(names: Iterable[str] = config.IMAGE_PROVIDERS) -> List[ImageProvider]:
    """Build the fallback chain in the given order, skipping unknown names."""
    providers: List[ImageProvider] = []
    for name in names:
        factory = PROVIDER_FACTORIES.get(name)
        if factory is None:
            logger.warning("Unknown image provider %r in configuration, skipping", name)
            continue
        providers.append(factory())
    return providers
