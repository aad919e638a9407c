from __future__ import annotations

import hashlib
import hmac
from typing import Any, Final, Literal, Mapping


ApiKeyMatchMode = Literal["contains", "exact"]

INVALID_API_KEY: Final[str] = "Invalid API key"
INVALID_SIGNATURE: Final[str] = "Invalid signature"
SIGNATURE_PREFIX: Final[str] = "sha256="


def _header(headers: Mapping[str, str], name: str) -> str | None:
    for key, value in headers.items():
        if key.lower() == name and value:
            return value
    return None


def _constant_time_equal(expected: str, provided: str) -> bool:
    expected_bytes = expected.encode("utf-8")
    provided_bytes = provided.encode("utf-8")
    if len(expected_bytes) != len(provided_bytes):
        return False
    return hmac.compare_digest(expected_bytes, provided_bytes)


def api_key_matches(
    configured_key: str,
    headers: Mapping[str, str],
    mode: ApiKeyMatchMode = "contains",
) -> bool:
    # Authorization wins over X-Api-Key when both are sent.
    credential = _header(headers, "authorization") or _header(headers, "x-api-key")
    if not credential:
        return False
    if mode == "exact":
        if credential[:7].lower() == "bearer ":
            credential = credential[7:].strip()
        return _constant_time_equal(configured_key, credential)
    return configured_key in credential


def compute_signature(raw_body: bytes, secret: str) -> str:
    return hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha256).hexdigest()


def verify_signature(raw_body: bytes, secret: str, signature_header: str | None) -> bool:
    if not signature_header:
        return False
    provided = signature_header.strip()
    if provided.startswith(SIGNATURE_PREFIX):
        provided = provided[len(SIGNATURE_PREFIX):]
    return _constant_time_equal(compute_signature(raw_body, secret), provided)


def check_credentials(
    endpoint: Mapping[str, Any],
    raw_body: bytes,
    headers: Mapping[str, str],
    mode: ApiKeyMatchMode = "contains",
) -> str | None:
    """Return None when the call may proceed, otherwise the failure reason."""
    api_key = endpoint.get("api_key")
    if api_key and not api_key_matches(api_key, headers, mode):
        return INVALID_API_KEY

    secret = endpoint.get("secret")
    if secret:
        signature = _header(headers, "x-signature") or _header(headers, "x-webhook-signature")
        if not verify_signature(raw_body, secret, signature):
            return INVALID_SIGNATURE

    return None
