"""Fun Profile SSO integration: outbound merge requests and webhook signatures."""

from __future__ import annotations

import hashlib
import hmac
import logging
from typing import Any

import httpx

from .settings import (
    FUN_PROFILE_API_URL,
    FUN_PROFILE_PLATFORM_ID,
    FUN_PROFILE_TIMEOUT_SECONDS,
    fun_profile_client_secret,
)

logger = logging.getLogger(__name__)

# Tests swap this for an httpx.MockTransport
_transport: httpx.BaseTransport | None = None


class FunProfileError(RuntimeError):
    """Fun Profile could not be reached or refused the request."""

    def __init__(self, message: str, status_code: int | None = None, details: str | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.details = details


def configure_transport(transport: httpx.BaseTransport | None) -> None:
    global _transport
    _transport = transport


def sign_payload(raw_body: bytes, secret: str) -> str:
    """Hex HMAC-SHA256 of the raw request body."""
    return hmac.new(secret.encode(), raw_body, hashlib.sha256).hexdigest()


def verify_signature(raw_body: bytes, signature: str | None, secret: str) -> bool:
    if not signature:
        return False
    expected = sign_payload(raw_body, secret)
    return hmac.compare_digest(expected, signature.strip().lower())


def send_merge_request(users: list[dict[str, Any]]) -> dict[str, Any]:
    """
    POST a batch of users to Fun Profile's SSO merge endpoint.

    Returns the decoded JSON response, which carries ``request_id`` and
    optionally ``request_ids`` keyed by email.

    Raises:
        FunProfileError: secret missing, network failure or non-2xx response
    """
    secret = fun_profile_client_secret()
    if not secret:
        raise FunProfileError("FUN_PROFILE_CLIENT_SECRET not configured")

    url = f"{FUN_PROFILE_API_URL.rstrip('/')}/api/sso-merge-request"
    headers = {
        "X-Platform-ID": FUN_PROFILE_PLATFORM_ID,
        "X-Platform-Secret": secret,
    }
    body = {"platform_id": FUN_PROFILE_PLATFORM_ID, "users": users}

    try:
        with httpx.Client(timeout=FUN_PROFILE_TIMEOUT_SECONDS, transport=_transport) as client:
            response = client.post(url, json=body, headers=headers)
    except httpx.HTTPError as e:
        logger.error(f"Fun Profile merge request failed: {e}")
        raise FunProfileError("Failed to reach Fun Profile", details=str(e)) from e

    if response.is_error:
        logger.error(f"Fun Profile API error {response.status_code}: {response.text}")
        raise FunProfileError(
            "Failed to send merge request to Fun Profile",
            status_code=response.status_code,
            details=response.text,
        )

    try:
        result = response.json()
    except ValueError as e:
        raise FunProfileError("Fun Profile returned invalid JSON", details=response.text) from e

    logger.info(f"Fun Profile accepted merge request for {len(users)} users: {result.get('request_id')}")
    return result
