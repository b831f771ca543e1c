"""
Twitter OAuth Routes
==================

HTTP endpoints for connecting an agent to a Twitter account with the
OAuth 1.0a flow:

- ``GET /twitter/oauth/initiate`` starts a handshake and returns the
  authorization URL
- ``GET /twitter/oauth/callback`` is where Twitter sends the user back; it
  always answers with a redirect to the application
- ``POST /agents/{agent_id}/disconnect`` forgets the agent's credentials
- ``GET /agents/{agent_id}/twitter/status`` reports the connection state
"""

import logging
from typing import Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Query
from fastapi.responses import RedirectResponse
from pydantic import BaseModel

from auth.middleware import get_current_user_id
from config import get_settings
from credentials import CallbackOutcome, CredentialError, OAuthFlowOrchestrator
from dependencies import get_orchestrator

# Set up logging
logger = logging.getLogger(__name__)

router = APIRouter(tags=["twitter", "oauth"])

CALLBACK_PATH = "/twitter/oauth/callback"


class InitiateResponse(BaseModel):
    authorizationUrl: str
    success: bool = True


class DisconnectResponse(BaseModel):
    success: bool = True
    message: str


class ConnectionStatusResponse(BaseModel):
    agentId: str
    state: str
    externalUserId: Optional[str] = None
    externalHandle: Optional[str] = None


def build_redirect_url(agent_id: Optional[str], outcome: CallbackOutcome) -> str:
    """Build the application URL the callback redirects the browser to."""
    settings = get_settings()
    params = {"agentId": agent_id or ""}
    if outcome.success:
        params["oauth_success"] = "true"
    else:
        params["oauth_error"] = outcome.message or "Failed to complete Twitter OAuth connection."
    return f"{settings.APP_URL.rstrip('/')}{settings.OAUTH_REDIRECT_PATH}?{urlencode(params)}"


def redirect_callback_error(agent_id: Optional[str], error: CredentialError) -> RedirectResponse:
    """
    Redirect a callback that failed before reaching the orchestrator, such as
    when one of its dependencies could not be built.
    """
    logger.error(f"OAuth callback could not be handled for agent {agent_id}: {error.code}")
    outcome = CallbackOutcome(success=False, error_code=error.code, message=error.message)
    return RedirectResponse(build_redirect_url(agent_id, outcome))


@router.get("/twitter/oauth/initiate", response_model=InitiateResponse)
async def twitter_oauth_initiate(
    agent_id: Optional[str] = Query(None, alias="agentId"),
    user_id: str = Depends(get_current_user_id),
    orchestrator: OAuthFlowOrchestrator = Depends(get_orchestrator)
):
    """
    Initiate the Twitter OAuth flow for an agent.

    Errors are raised as CredentialError and rendered by the application's
    exception handler.
    """
    authorization_url = await orchestrator.initiate(agent_id, user_id)
    return InitiateResponse(authorizationUrl=authorization_url)


@router.get(CALLBACK_PATH)
async def twitter_oauth_callback(
    oauth_token: Optional[str] = Query(None),
    oauth_verifier: Optional[str] = Query(None),
    denied: Optional[str] = Query(None),
    agent_id: Optional[str] = Query(None, alias="agentId"),
    orchestrator: OAuthFlowOrchestrator = Depends(get_orchestrator)
):
    """
    Handle Twitter OAuth callback.

    This endpoint is reached through a browser redirect from Twitter, so it
    never returns an error body: the outcome is passed to the application as
    ``oauth_success`` or ``oauth_error`` on the redirect.
    """
    outcome = await orchestrator.resolve_callback(
        oauth_token,
        oauth_verifier,
        bool(denied),
        agent_id
    )
    return RedirectResponse(build_redirect_url(agent_id, outcome))


@router.post("/agents/{agent_id}/disconnect", response_model=DisconnectResponse)
async def disconnect_agent(
    agent_id: str,
    user_id: str = Depends(get_current_user_id),
    orchestrator: OAuthFlowOrchestrator = Depends(get_orchestrator)
):
    """Disconnect the agent's X account."""
    logger.info(f"Processing disconnect for agent {agent_id} by user {user_id}")
    orchestrator.disconnect(agent_id)
    return DisconnectResponse(message="X account disconnected successfully")


@router.get("/agents/{agent_id}/twitter/status", response_model=ConnectionStatusResponse)
async def agent_twitter_status(
    agent_id: str,
    user_id: str = Depends(get_current_user_id),
    orchestrator: OAuthFlowOrchestrator = Depends(get_orchestrator)
):
    """Report whether the agent is connected to an X account."""
    status = orchestrator.status(agent_id)
    return ConnectionStatusResponse(
        agentId=status.agent_id,
        state=status.state.value,
        externalUserId=status.external_user_id,
        externalHandle=status.external_handle
    )
