"""
Shared error parsing for the hosted service adapters.

Identity Toolkit REST errors carry an upper-case message such as "EMAIL_EXISTS"
or "WEAK_PASSWORD : Password should be at least 6 characters". These are
normalized to the provider's client error codes ("auth/email-already-in-use")
so the session layer has one vocabulary to map, whatever transport produced it.
"""

from dataclasses import dataclass
from typing import Any

import httpx

NETWORK_REQUEST_FAILED = "auth/network-request-failed"
INTERNAL_ERROR = "auth/internal-error"

IDENTITY_ERROR_CODES: dict[str, str] = {
    "EMAIL_EXISTS": "auth/email-already-in-use",
    "INVALID_EMAIL": "auth/invalid-email",
    "MISSING_EMAIL": "auth/invalid-email",
    "MISSING_PASSWORD": "auth/missing-password",
    "OPERATION_NOT_ALLOWED": "auth/operation-not-allowed",
    "ADMIN_ONLY_OPERATION": "auth/admin-restricted-operation",
    "WEAK_PASSWORD": "auth/weak-password",
    "EMAIL_NOT_FOUND": "auth/user-not-found",
    "INVALID_PASSWORD": "auth/wrong-password",
    "INVALID_LOGIN_CREDENTIALS": "auth/invalid-credential",
    "USER_DISABLED": "auth/user-disabled",
    "TOO_MANY_ATTEMPTS_TRY_LATER": "auth/too-many-requests",
    "INVALID_ID_TOKEN": "auth/invalid-user-token",
    "TOKEN_EXPIRED": "auth/user-token-expired",
}


@dataclass
class ParsedApiError:
    """Parsed hosted-service error with a normalized code and message."""

    code: str
    message: str


def parse_identity_error(e: httpx.HTTPError) -> ParsedApiError:
    """
    Parse an httpx error from the Identity Toolkit into a provider error code.

    Transport failures (DNS, connect, timeouts) become
    "auth/network-request-failed"; unrecognized responses become
    "auth/internal-error".
    """
    if not isinstance(e, httpx.HTTPStatusError):
        return ParsedApiError(NETWORK_REQUEST_FAILED, "Network request failed")

    raw_message = _safe_get_error_message(e.response)
    if not raw_message:
        return ParsedApiError(INTERNAL_ERROR, f"Identity API error {e.response.status_code}")

    # "WEAK_PASSWORD : Password should be at least 6 characters"
    key, _, detail = raw_message.partition(" : ")
    key = key.strip()
    code = IDENTITY_ERROR_CODES.get(key, INTERNAL_ERROR)
    return ParsedApiError(code, detail.strip() or key)


def parse_service_error(e: httpx.HTTPError, service: str) -> ParsedApiError:
    """Parse a search/storage error into a short code and readable message."""
    if not isinstance(e, httpx.HTTPStatusError):
        return ParsedApiError("network", f"{service} unreachable: {e}")

    status = e.response.status_code
    message = _safe_get_error_message(e.response) or f"{service} error {status}"
    if status == 404:
        return ParsedApiError("not_found", message)
    if status in (401, 403):
        return ParsedApiError("forbidden", message)
    return ParsedApiError("internal", message)


def _safe_get_error_message(response: httpx.Response) -> str:
    """Safely extract the error message from an error response body."""
    try:
        body: Any = response.json()
    except ValueError:
        return ""
    if not isinstance(body, dict):
        return ""
    error = body.get("error")
    if isinstance(error, dict):
        message = error.get("message", "")
        return message if isinstance(message, str) else ""
    message = body.get("message", "")
    return message if isinstance(message, str) else ""
