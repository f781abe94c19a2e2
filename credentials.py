"""
Service-account credential parsing.

Credential blobs usually arrive through an environment variable, where the
private key's newlines get mangled in one of two ways: escaped twice (a
literal backslash-n survives JSON decoding) or pasted as real newlines
(which makes the JSON itself invalid). Parsing is a two-stage
parse-or-repair:

1. ``direct``: parse the raw text as-is.
2. ``sanitized``: only if stage 1 fails, strip surrounding noise and parse
   again tolerating raw control characters inside strings.

Private-key newlines are normalized after a successful parse, never before.
"""

import json
from dataclasses import dataclass
from typing import Any, Dict, Optional

from errors import AuthMissing, CredentialMalformed

STAGE_DIRECT = "direct"
STAGE_SANITIZED = "sanitized"

REQUIRED_FIELDS = ("client_email", "private_key")

_QUOTES = ("'", '"')


@dataclass(frozen=True)
class ParsedCredential:
    """A parsed service-account blob and the stage that produced it."""

    info: Dict[str, Any]
    stage: str


def _sanitize(raw: str) -> str:
    """Remove whitespace, BOM and one layer of wrapping quotes."""
    text = raw.strip().lstrip("\ufeff").strip()
    if len(text) >= 2 and text[0] == text[-1] and text[0] in _QUOTES:
        text = text[1:-1].strip()
    return text


def _normalize_private_key(info: Dict[str, Any]) -> Dict[str, Any]:
    key = info.get("private_key")
    if isinstance(key, str):
        info = dict(info)
        info["private_key"] = key.replace("\\r\\n", "\n").replace("\\n", "\n").replace("\r\n", "\n")
    return info


def _validate(info: Any, provider: str) -> Dict[str, Any]:
    if not isinstance(info, dict):
        raise CredentialMalformed(provider, "credential JSON is not an object")
    missing = [field for field in REQUIRED_FIELDS if not info.get(field)]
    if missing:
        raise CredentialMalformed(provider, f"credential JSON missing fields: {', '.join(missing)}")
    return info


def parse_service_account(raw: Optional[str], provider: str = "vertex") -> ParsedCredential:
    """
    Parse a service-account JSON blob.

    Args:
        raw: Credential text as read from configuration
        provider: Provider name used in raised errors

    Returns:
        ParsedCredential with the normalized info dict and the parse stage

    Raises:
        AuthMissing: If no credential text is configured
        CredentialMalformed: If the blob is invalid after both stages
    """
    if raw is None or not raw.strip():
        raise AuthMissing(provider, "no service-account credential configured")

    try:
        info = json.loads(raw)
        stage = STAGE_DIRECT
    except json.JSONDecodeError as direct_error:
        try:
            info = json.loads(_sanitize(raw), strict=False)
            stage = STAGE_SANITIZED
        except json.JSONDecodeError as sanitized_error:
            raise CredentialMalformed(
                provider,
                f"credential JSON unparsable ({direct_error.msg}; after sanitization: {sanitized_error.msg})",
            ) from sanitized_error

    info = _validate(info, provider)
    return ParsedCredential(info=_normalize_private_key(info), stage=stage)
