"""
FastAPI dependencies wiring the credential components together.

The cipher, token cache, rate limiter and Twitter provider are process-wide
and built once. The store and orchestrator are built per request around the
request's database session. Tests replace any of these through
``app.dependency_overrides``.
"""

from functools import lru_cache

from fastapi import Depends
from sqlalchemy.orm import Session

from config import get_settings
from database import get_db
from credentials import (
    CredentialStore,
    InMemoryRateLimiter,
    OAuthFlowOrchestrator,
    OAuthProvider,
    RateLimiter,
    SecretCipher,
    SQLAlchemyPersistenceGateway,
    TemporaryTokenCache,
    TwitterOAuthProvider,
)


@lru_cache()
def get_cipher() -> SecretCipher:
    return SecretCipher.from_settings(get_settings())


@lru_cache()
def get_token_cache() -> TemporaryTokenCache:
    return TemporaryTokenCache(ttl_seconds=get_settings().TEMP_TOKEN_TTL_SECONDS)


@lru_cache()
def get_rate_limiter() -> RateLimiter:
    settings = get_settings()
    return InMemoryRateLimiter(
        window_seconds=settings.OAUTH_RATE_LIMIT_WINDOW_SECONDS,
        max_requests=settings.OAUTH_RATE_LIMIT_MAX_REQUESTS,
    )


@lru_cache()
def get_oauth_provider() -> OAuthProvider:
    return TwitterOAuthProvider.from_settings(get_settings())


def get_credential_store(
    db: Session = Depends(get_db),
    cipher: SecretCipher = Depends(get_cipher),
    cache: TemporaryTokenCache = Depends(get_token_cache),
) -> CredentialStore:
    return CredentialStore(SQLAlchemyPersistenceGateway(db), cipher, cache)


def get_orchestrator(
    store: CredentialStore = Depends(get_credential_store),
    provider: OAuthProvider = Depends(get_oauth_provider),
    rate_limiter: RateLimiter = Depends(get_rate_limiter),
) -> OAuthFlowOrchestrator:
    return OAuthFlowOrchestrator(
        store=store,
        provider=provider,
        rate_limiter=rate_limiter,
        callback_url=get_settings().TWITTER_OAUTH_CALLBACK_URL,
    )
