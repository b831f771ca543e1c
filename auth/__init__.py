"""
Authentication module for the agent credential service.

This module identifies API callers:
- JWT token issuing and validation
- Authentication middleware
"""

from .jwt_service import (
    create_token,
    validate_token
)

from .middleware import (
    AuthMiddleware,
    get_current_user_id
)

__all__ = [
    # JWT Token management
    "create_token",
    "validate_token",

    # Middleware
    "AuthMiddleware",
    "get_current_user_id"
]
