"""
Credential Errors
=================

Exception hierarchy for the credential lifecycle. Every error carries a stable
machine-readable ``code``, the HTTP ``status_code`` the web layer should use
and a ``message`` that is safe to show to an end user (it never contains
secrets or upstream internals).
"""

from enum import Enum
from typing import Optional


class CredentialError(Exception):
    """Base class for all credential lifecycle errors."""

    code = "credential_error"
    status_code = 500
    default_message = "An unexpected credential error occurred."

    def __init__(self, message: Optional[str] = None, cause: Optional[Exception] = None):
        self.message = message or self.default_message
        self.cause = cause
        super().__init__(self.message)

    def to_dict(self):
        return {"error": self.code, "detail": self.message, "success": False}


class InvalidInputError(CredentialError):
    code = "invalid_input"
    status_code = 400
    default_message = "Invalid request parameters."


class InvalidCallbackError(InvalidInputError):
    code = "invalid_callback"
    default_message = "Invalid callback parameters received."


class RateLimitedError(CredentialError):
    code = "rate_limited"
    status_code = 429
    default_message = "Too many OAuth requests. Please try again later."


class ExpiredSessionError(CredentialError):
    code = "expired_session"
    status_code = 400
    default_message = "OAuth session expired or invalid. Please try connecting again."


class UpstreamErrorKind(str, Enum):
    TIMEOUT = "timeout"
    RATE_LIMITED = "rate_limited"
    CLIENT_ERROR = "client_error"
    SERVER_ERROR = "server_error"


_UPSTREAM_STATUS = {
    UpstreamErrorKind.TIMEOUT: 504,
    UpstreamErrorKind.RATE_LIMITED: 429,
    UpstreamErrorKind.CLIENT_ERROR: 502,
    UpstreamErrorKind.SERVER_ERROR: 502,
}

_UPSTREAM_MESSAGES = {
    UpstreamErrorKind.TIMEOUT: "Request to Twitter API timed out. Please try again.",
    UpstreamErrorKind.RATE_LIMITED: "Twitter API rate limit exceeded. Please try again later.",
    UpstreamErrorKind.CLIENT_ERROR: "Twitter rejected the authorization request.",
    UpstreamErrorKind.SERVER_ERROR: "Twitter is currently unavailable. Please try again later.",
}


class UpstreamAPIError(CredentialError):
    """A call to the external platform failed."""

    code = "upstream_error"

    def __init__(
        self,
        kind: UpstreamErrorKind,
        message: Optional[str] = None,
        upstream_status: Optional[int] = None,
        cause: Optional[Exception] = None,
    ):
        self.kind = UpstreamErrorKind(kind)
        self.upstream_status = upstream_status
        super().__init__(message or _UPSTREAM_MESSAGES[self.kind], cause=cause)

    @property
    def status_code(self) -> int:
        return _UPSTREAM_STATUS[self.kind]

    def to_dict(self):
        data = super().to_dict()
        data["kind"] = self.kind.value
        return data


class EncryptionFailure(CredentialError):
    code = "encryption_failure"
    default_message = "Failed to encrypt sensitive data."


class DecryptionFailure(CredentialError):
    code = "decryption_failure"
    default_message = "Failed to decrypt sensitive data."


class PersistenceError(CredentialError):
    code = "persistence_error"
    default_message = "Failed to access credential storage."


class ConfigurationError(CredentialError):
    code = "configuration_error"
    default_message = "Server configuration error."
