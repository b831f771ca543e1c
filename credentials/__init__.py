"""
Credential lifecycle for agent Twitter accounts.

This package provides:
- Encryption of secrets at rest
- A short-lived cache of handshake secrets
- Rate limiting of flow initiation
- Durable credential storage
- The OAuth1.0a flow orchestrator
"""

from .errors import (
    CredentialError,
    InvalidInputError,
    InvalidCallbackError,
    RateLimitedError,
    ExpiredSessionError,
    UpstreamAPIError,
    UpstreamErrorKind,
    EncryptionFailure,
    DecryptionFailure,
    PersistenceError,
    ConfigurationError
)

from .cipher import SecretCipher, check_master_secret
from .token_cache import TemporaryTokenCache
from .rate_limiter import RateLimiter, InMemoryRateLimiter
from .gateway import PersistenceGateway, SQLAlchemyPersistenceGateway
from .store import CredentialStore, PermanentCredentials
from .provider import OAuthProvider, TwitterOAuthProvider, RequestToken, AccessGrant

from .orchestrator import (
    OAuthFlowOrchestrator,
    ConnectionState,
    ConnectionStatus,
    CallbackOutcome
)

__all__ = [
    # Errors
    "CredentialError",
    "InvalidInputError",
    "InvalidCallbackError",
    "RateLimitedError",
    "ExpiredSessionError",
    "UpstreamAPIError",
    "UpstreamErrorKind",
    "EncryptionFailure",
    "DecryptionFailure",
    "PersistenceError",
    "ConfigurationError",

    # Building blocks
    "SecretCipher",
    "check_master_secret",
    "TemporaryTokenCache",
    "RateLimiter",
    "InMemoryRateLimiter",
    "PersistenceGateway",
    "SQLAlchemyPersistenceGateway",
    "CredentialStore",
    "PermanentCredentials",
    "OAuthProvider",
    "TwitterOAuthProvider",
    "RequestToken",
    "AccessGrant",

    # Orchestration
    "OAuthFlowOrchestrator",
    "ConnectionState",
    "ConnectionStatus",
    "CallbackOutcome"
]
