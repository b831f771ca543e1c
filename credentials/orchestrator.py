"""
OAuth Flow Orchestrator
=======================

Drives the three-legged OAuth1.0a flow that connects an agent to a Twitter
account. Per agent the flow moves between three states:

    DISCONNECTED -> AWAITING_AUTHORIZATION -> CONNECTED
    AWAITING_AUTHORIZATION -> DISCONNECTED     (denied or failed)
    CONNECTED -> AWAITING_AUTHORIZATION        (re-authentication)

``initiate`` rate-limits the caller, obtains a request token and records it;
``callback`` completes the handshake with the verifier returned by Twitter.
When a call to Twitter fails the agent's temporary pair is cleared as a
compensating action. A failure of that cleanup is logged and never replaces
the error reported to the caller.
"""

import logging
import re
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from typing import Optional
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from credentials.errors import (
    CredentialError,
    ExpiredSessionError,
    InvalidCallbackError,
    InvalidInputError,
    RateLimitedError,
)
from credentials.provider import OAuthProvider
from credentials.rate_limiter import RateLimiter
from credentials.store import CredentialStore, mask_token

logger = logging.getLogger(__name__)

AGENT_ID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$",
    re.IGNORECASE,
)
# Printable ASCII without whitespace
OAUTH_VALUE_PATTERN = re.compile(r"^[\x21-\x7e]{1,512}$")

DENIED_MESSAGE = "User denied X access"
GENERIC_FAILURE_MESSAGE = "Failed to complete Twitter OAuth connection."


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    AWAITING_AUTHORIZATION = "awaiting_authorization"
    CONNECTED = "connected"


@dataclass
class CallbackOutcome:
    """Result of handling an OAuth callback."""
    success: bool
    state: Optional[ConnectionState] = None
    error_code: Optional[str] = None
    message: Optional[str] = None
    external_handle: Optional[str] = None

    @property
    def denied(self) -> bool:
        return self.error_code == "access_denied"


@dataclass
class ConnectionStatus:
    agent_id: str
    state: ConnectionState
    external_user_id: Optional[str] = None
    external_handle: Optional[str] = None


def is_valid_agent_id(agent_id: Optional[str]) -> bool:
    return bool(agent_id) and isinstance(agent_id, str) and bool(AGENT_ID_PATTERN.match(agent_id))


def validate_agent_id(agent_id: Optional[str]) -> str:
    """Check the agent id is a UUID and return it in canonical lowercase form."""
    if not agent_id or not isinstance(agent_id, str) or not agent_id.strip():
        raise InvalidInputError("Valid agentId query parameter is required")
    if not AGENT_ID_PATTERN.match(agent_id):
        raise InvalidInputError("Invalid agentId format")
    return agent_id.lower()


def build_callback_url(base_url: str, agent_id: str) -> str:
    """Append ``agentId`` to the callback URL, keeping any existing query."""
    parts = urlsplit(base_url)
    query = [(key, value) for key, value in parse_qsl(parts.query, keep_blank_values=True) if key != "agentId"]
    query.append(("agentId", agent_id))
    return urlunsplit(parts._replace(query=urlencode(query)))


class OAuthFlowOrchestrator:
    """Coordinates the rate limiter, the Twitter provider and the credential store."""

    def __init__(
        self,
        store: CredentialStore,
        provider: OAuthProvider,
        rate_limiter: RateLimiter,
        callback_url: str,
    ):
        self.store = store
        self.provider = provider
        self.rate_limiter = rate_limiter
        self.callback_url = callback_url

    async def initiate(self, agent_id: str, caller_identity: str) -> str:
        """
        Start connecting ``agent_id`` to a Twitter account.

        Args:
            agent_id: UUID of the agent to connect
            caller_identity: Authenticated identity of the caller, used for rate limiting

        Returns:
            str: The Twitter authorization URL to send the user to

        Raises:
            RateLimitedError: If the caller has started too many flows recently
            InvalidInputError: If the agent id is malformed
            UpstreamAPIError: If Twitter could not issue a request token
        """
        if not self.rate_limiter.try_acquire(caller_identity):
            raise RateLimitedError()

        agent_id = validate_agent_id(agent_id)
        logger.info(f"Starting OAuth flow for agent {agent_id}, user {caller_identity}")

        callback_url = build_callback_url(self.callback_url, agent_id)
        with self._clear_temporary_on_failure(agent_id):
            request_token = await self.provider.fetch_request_token(callback_url)
            self.store.save_temporary(agent_id, request_token.token, request_token.secret)

        logger.info(f"Generated auth link for agent {agent_id}")
        return request_token.authorization_url

    async def callback(
        self,
        request_token: Optional[str],
        verifier: Optional[str],
        denied: bool,
        agent_id: Optional[str],
    ) -> CallbackOutcome:
        """
        Complete (or abandon) a handshake after Twitter redirects back.

        A denial is a normal outcome: the temporary pair is cleared and a
        DISCONNECTED outcome returned.

        Raises:
            InvalidCallbackError: If a required parameter is missing or malformed
            ExpiredSessionError: If the request token is unknown, expired or already used
            UpstreamAPIError: If the access token exchange fails
        """
        if denied:
            logger.warning(f"User denied access for agent {agent_id}")
            if is_valid_agent_id(agent_id):
                self._clear_temporary_quietly(agent_id.lower())
            return CallbackOutcome(
                success=False,
                state=ConnectionState.DISCONNECTED,
                error_code="access_denied",
                message=DENIED_MESSAGE,
            )

        if not (
            request_token
            and verifier
            and OAUTH_VALUE_PATTERN.match(request_token)
            and OAUTH_VALUE_PATTERN.match(verifier)
            and is_valid_agent_id(agent_id)
        ):
            logger.error("Missing or invalid callback parameters")
            raise InvalidCallbackError()

        agent_id = agent_id.lower()

        request_secret = self.store.get_temporary_secret(request_token)
        if not request_secret:
            logger.error(f"No secret found for token: {mask_token(request_token)}")
            raise ExpiredSessionError()

        with self._clear_temporary_on_failure(agent_id):
            grant = await self.provider.fetch_access_token(request_token, request_secret, verifier)
            self.store.save_permanent(
                agent_id,
                grant.access_token,
                grant.access_secret,
                grant.external_user_id,
                grant.external_handle,
                request_token=request_token,
            )

        logger.info(f"Agent {agent_id}, X Account: @{grant.external_handle} connected")
        return CallbackOutcome(
            success=True,
            state=ConnectionState.CONNECTED,
            external_handle=grant.external_handle,
        )

    async def resolve_callback(
        self,
        request_token: Optional[str],
        verifier: Optional[str],
        denied: bool,
        agent_id: Optional[str],
    ) -> CallbackOutcome:
        """Like ``callback`` but failures are returned as an outcome instead of raised."""
        try:
            return await self.callback(request_token, verifier, denied, agent_id)
        except CredentialError as e:
            logger.error(f"OAuth callback error for agent {agent_id}: {e.code}")
            return CallbackOutcome(success=False, error_code=e.code, message=e.message)
        except Exception as e:
            logger.exception(f"Unexpected OAuth callback error for agent {agent_id}: {str(e)}")
            return CallbackOutcome(success=False, error_code="internal_error", message=GENERIC_FAILURE_MESSAGE)

    def status(self, agent_id: str) -> ConnectionStatus:
        """Report the agent's connection state without decrypting any secret."""
        agent_id = validate_agent_id(agent_id)
        summary = self.store.get_summary(agent_id)

        if summary is None:
            return ConnectionStatus(agent_id=agent_id, state=ConnectionState.DISCONNECTED)
        if summary.has_permanent_pair:
            return ConnectionStatus(
                agent_id=agent_id,
                state=ConnectionState.CONNECTED,
                external_user_id=summary.external_user_id,
                external_handle=summary.external_handle,
            )
        if summary.has_temporary_pair:
            return ConnectionStatus(agent_id=agent_id, state=ConnectionState.AWAITING_AUTHORIZATION)
        return ConnectionStatus(agent_id=agent_id, state=ConnectionState.DISCONNECTED)

    def disconnect(self, agent_id: str) -> None:
        """Forget every credential held for the agent."""
        agent_id = validate_agent_id(agent_id)
        self.store.delete(agent_id)
        logger.info(f"Disconnected X account for agent {agent_id}")

    @contextmanager
    def _clear_temporary_on_failure(self, agent_id: str):
        try:
            yield
        except ExpiredSessionError:
            # Another handshake owns the temporary pair now
            raise
        except Exception:
            self._clear_temporary_quietly(agent_id)
            raise

    def _clear_temporary_quietly(self, agent_id: str) -> None:
        try:
            self.store.clear_temporary(agent_id)
        except Exception as cleanup_error:
            logger.error(f"Failed to clear temp tokens for agent {agent_id}: {str(cleanup_error)}")
