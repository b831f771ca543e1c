"""
Twitter OAuth Provider
======================

Client for the external platform's OAuth1.0a handshake endpoints.

TwitterOAuthProvider uses tweepy's OAuth1UserHandler (HMAC-SHA1 signing via
requests-oauthlib) to obtain request tokens and exchange verified request
tokens for access tokens, then looks up the connected account with the v2
``users/me`` endpoint. tweepy is synchronous, so each call runs in a worker
thread bounded by the configured timeout. The HTTP sessions tweepy uses get
the same timeout, so a hung connection also releases its worker thread.

All failures are raised as UpstreamAPIError with a kind describing what went
wrong (timeout, upstream rate limit, 4xx or 5xx).
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Optional

import requests
import tweepy
from requests.adapters import HTTPAdapter

from credentials.errors import ConfigurationError, UpstreamAPIError, UpstreamErrorKind

# Set up logging
logger = logging.getLogger(__name__)


class TimeoutHTTPAdapter(HTTPAdapter):
    """HTTPAdapter that applies a default timeout to requests sent without one."""

    def __init__(self, timeout: float, *args, **kwargs):
        self.timeout = timeout
        super().__init__(*args, **kwargs)

    def send(self, request, **kwargs):
        if kwargs.get("timeout") is None:
            kwargs["timeout"] = self.timeout
        return super().send(request, **kwargs)


def mount_timeout(session: requests.Session, timeout: float) -> requests.Session:
    adapter = TimeoutHTTPAdapter(timeout)
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    return session


class TimeoutOAuth1UserHandler(tweepy.OAuth1UserHandler):
    """
    OAuth1UserHandler whose token requests give up after ``timeout`` seconds.

    tweepy replaces its ``oauth`` session when exchanging the verifier, so the
    adapter is mounted on every session assigned to it.
    """

    def __init__(self, *args, timeout: float = 10.0, **kwargs):
        self.timeout = timeout
        super().__init__(*args, **kwargs)

    @property
    def oauth(self):
        return self._oauth

    @oauth.setter
    def oauth(self, session):
        self._oauth = mount_timeout(session, self.timeout)


@dataclass
class RequestToken:
    token: str
    secret: str
    authorization_url: str


@dataclass
class AccessGrant:
    access_token: str
    access_secret: str
    external_user_id: str
    external_handle: str


class OAuthProvider(ABC):
    """The external platform's side of the three-legged handshake."""

    @abstractmethod
    async def fetch_request_token(self, callback_url: str) -> RequestToken:
        """Obtain a request token pair and the URL the user must visit."""

    @abstractmethod
    async def fetch_access_token(self, request_token: str, request_secret: str, verifier: str) -> AccessGrant:
        """Exchange an authorized request token for a permanent access pair."""


def classify_upstream_error(error: BaseException) -> UpstreamAPIError:
    """
    Map an exception raised while talking to Twitter onto UpstreamAPIError.

    tweepy wraps transport errors from its OAuth handler in a bare
    TweepyException, so the wrapped exception is inspected as well.
    """
    if isinstance(error, UpstreamAPIError):
        return error

    if isinstance(error, (asyncio.TimeoutError, requests.exceptions.Timeout)):
        return UpstreamAPIError(UpstreamErrorKind.TIMEOUT, cause=error)

    if isinstance(error, tweepy.TooManyRequests):
        return UpstreamAPIError(UpstreamErrorKind.RATE_LIMITED, upstream_status=429, cause=error)

    if isinstance(error, tweepy.HTTPException):
        status = getattr(error.response, "status_code", None)
        return _from_status(status, error)

    if isinstance(error, tweepy.TweepyException) and error.args and isinstance(error.args[0], BaseException):
        return classify_upstream_error(error.args[0])

    # requests-oauthlib's TokenRequestDenied exposes the response status
    status = getattr(error, "status_code", None)
    if isinstance(status, int):
        return _from_status(status, error)

    return UpstreamAPIError(UpstreamErrorKind.SERVER_ERROR, cause=error)


def _from_status(status: Optional[int], error: BaseException) -> UpstreamAPIError:
    if status == 429:
        kind = UpstreamErrorKind.RATE_LIMITED
    elif status is not None and 400 <= status < 500:
        kind = UpstreamErrorKind.CLIENT_ERROR
    else:
        kind = UpstreamErrorKind.SERVER_ERROR
    return UpstreamAPIError(kind, upstream_status=status, cause=error)


class TwitterOAuthProvider(OAuthProvider):
    """OAuthProvider for Twitter / X."""

    def __init__(self, consumer_key: str, consumer_secret: str, timeout: float = 10.0):
        if not consumer_key or not consumer_secret:
            raise ConfigurationError("Twitter API keys missing")
        self.consumer_key = consumer_key
        self.consumer_secret = consumer_secret
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings) -> "TwitterOAuthProvider":
        settings.require_twitter_credentials()
        return cls(
            settings.TWITTER_CONSUMER_KEY,
            settings.TWITTER_CONSUMER_SECRET,
            timeout=settings.TWITTER_API_TIMEOUT_SECONDS,
        )

    def get_oauth_handler(self, callback_url: Optional[str] = None) -> tweepy.OAuth1UserHandler:
        """
        Get a Twitter OAuth handler instance.

        Args:
            callback_url (Optional[str]): Callback URL for the OAuth flow

        Returns:
            tweepy.OAuth1UserHandler: Configured OAuth handler
        """
        return TimeoutOAuth1UserHandler(
            self.consumer_key,
            self.consumer_secret,
            callback=callback_url,
            timeout=self.timeout,
        )

    async def _call(self, func: Callable[..., Any], *args, **kwargs) -> Any:
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(func, *args, **kwargs),
                timeout=self.timeout,
            )
        except Exception as e:
            error = classify_upstream_error(e)
            logger.error(f"Twitter API call failed ({error.kind.value}): {str(e)}")
            raise error from e

    async def fetch_request_token(self, callback_url: str) -> RequestToken:
        auth = self.get_oauth_handler(callback_url)
        authorization_url = await self._call(
            auth.get_authorization_url,
            signin_with_twitter=False,
            access_type="write",
        )
        request_token = auth.request_token

        return RequestToken(
            token=request_token["oauth_token"],
            secret=request_token["oauth_token_secret"],
            authorization_url=authorization_url,
        )

    async def fetch_access_token(self, request_token: str, request_secret: str, verifier: str) -> AccessGrant:
        auth = self.get_oauth_handler()
        auth.request_token = {
            "oauth_token": request_token,
            "oauth_token_secret": request_secret,
        }

        access_token, access_secret = await self._call(auth.get_access_token, verifier)
        user = await self.get_user_info(access_token, access_secret)

        return AccessGrant(
            access_token=access_token,
            access_secret=access_secret,
            external_user_id=user["id"],
            external_handle=user["screen_name"],
        )

    async def get_user_info(self, access_token: str, access_token_secret: str) -> dict:
        """Look up the account an access pair belongs to."""
        client = tweepy.Client(
            consumer_key=self.consumer_key,
            consumer_secret=self.consumer_secret,
            access_token=access_token,
            access_token_secret=access_token_secret,
        )
        mount_timeout(client.session, self.timeout)
        response = await self._call(client.get_me, user_auth=True)

        return {
            "id": str(response.data.id),
            "screen_name": response.data.username,
            "name": response.data.name,
        }
