"""
Authentication Middleware
========================

This module provides middleware for identifying callers of the credential
API. It extracts a JWT from either the ``access_token`` cookie or the
Authorization header, validates it, and makes the caller identity available
to route handlers as ``request.state.user_id``.
"""

import logging
from typing import List

from fastapi import Request, Response, HTTPException
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.types import ASGIApp

from auth.jwt_service import validate_token

# Set up logger
logger = logging.getLogger(__name__)

class AuthMiddleware(BaseHTTPMiddleware):
    """
    Middleware for JWT caller authentication.

    Requests to protected paths without a valid token are rejected with 401.
    Other requests pass through; a valid token is still attached when present.
    """

    def __init__(
        self,
        app: ASGIApp,
        protected_paths: List[str] = None
    ):
        """
        Initialize the authentication middleware.

        Args:
            app: The ASGI application
            protected_paths: List of paths that require authentication (supports wildcards)
        """
        super().__init__(app)
        self.protected_paths = protected_paths or [
            "/twitter/oauth/initiate",
            "/agents/*"
        ]

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path

        # Initialize authentication state
        request.state.user_id = None
        request.state.is_authenticated = False

        # Try to get token from cookie first, then Authorization header
        token = request.cookies.get("access_token")
        auth_header = request.headers.get("Authorization", "")
        if not token and auth_header.startswith("Bearer "):
            token = auth_header[len("Bearer "):]

        if token:
            token_data = validate_token(token)
            if token_data:
                request.state.user_id = token_data["user_id"]
                request.state.is_authenticated = True

        if self._requires_auth(path) and not request.state.is_authenticated:
            logger.debug(f"Rejected unauthenticated request to {path}")
            return JSONResponse(
                status_code=401,
                content={"error": "unauthenticated", "detail": "Authentication required", "success": False}
            )

        return await call_next(request)

    def _requires_auth(self, path: str) -> bool:
        """
        Check if a path requires authentication.

        Args:
            path: Request path

        Returns:
            True if authentication is required, False otherwise
        """
        # Check exact matches
        if path in self.protected_paths:
            return True

        # Check wildcards
        for protected_path in self.protected_paths:
            if protected_path.endswith("*") and path.startswith(protected_path[:-1]):
                return True

        return False

# Dependency for getting the current caller
async def get_current_user_id(request: Request) -> str:
    """
    FastAPI dependency for getting the authenticated caller identity.

    Raises:
        HTTPException: If the caller is not authenticated
    """
    user_id = getattr(request.state, "user_id", None)
    if not user_id:
        raise HTTPException(
            status_code=401,
            detail="Not authenticated"
        )
    return user_id
