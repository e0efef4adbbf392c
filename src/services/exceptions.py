"""Shared exceptions for service layer operations."""
from enum import StrEnum


class AuthErrorKind(StrEnum):
    """
    Closed taxonomy of session errors surfaced to the UI layer.

    Identity provider error codes are mapped onto these kinds at the session
    boundary; raw provider errors never reach callers.
    """

    INVALID_INPUT = "invalid_input"
    DUPLICATE_IDENTITY = "duplicate_identity"
    INVALID_CREDENTIAL = "invalid_credential"
    ACCOUNT_DISABLED = "account_disabled"
    OPERATION_DISABLED = "operation_disabled"
    WEAK_CREDENTIAL = "weak_credential"
    RATE_LIMITED = "rate_limited"
    NETWORK_UNAVAILABLE = "network_unavailable"
    UNKNOWN = "unknown"


class SessionError(Exception):
    """
    Raised by session operations (register, login, logout, guest login).

    `message` is suitable for showing to the user as-is.
    """

    def __init__(self, kind: AuthErrorKind, message: str) -> None:
        self.kind = kind
        self.message = message
        super().__init__(message)

    @property
    def is_transient(self) -> bool:
        """Whether retrying later may succeed."""
        return self.kind == AuthErrorKind.NETWORK_UNAVAILABLE
