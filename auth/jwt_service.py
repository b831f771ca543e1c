"""
JWT Token Service
===============

Issues and validates the bearer tokens that identify callers of the
credential API. End users authenticate with an external identity provider;
this service only checks the signed token it hands out.

The service follows these principles:
- Tokens are HS256-signed with ``SECRET_KEY``
- The ``sub`` claim is the caller identity
- Tokens expire after 2 hours by default
"""

import jwt
import uuid
import logging
from typing import Dict, Optional, Any
from datetime import datetime, timedelta, timezone

from config import get_settings

# Set up logger
logger = logging.getLogger(__name__)

ALGORITHM = "HS256"

def create_token(
    user_id: str,
    expiry_hours: int = 2,
    secret_key: Optional[str] = None
) -> Dict[str, Any]:
    """
    Create a signed JWT for a caller.

    Args:
        user_id: The caller identity placed in the ``sub`` claim
        expiry_hours: Token expiration hours (default 2)
        secret_key: Signing key, defaults to the configured SECRET_KEY

    Returns:
        Dict with the encoded token, its id and expiry
    """
    token_id = str(uuid.uuid4())
    expires_at = datetime.now(timezone.utc) + timedelta(hours=expiry_hours)

    payload = {
        "sub": user_id,
        "jti": token_id,
        "exp": expires_at
    }

    encoded_token = jwt.encode(
        payload,
        secret_key or get_settings().SECRET_KEY,
        algorithm=ALGORITHM
    )

    return {
        "token": encoded_token,
        "token_id": token_id,
        "expires_at": expires_at
    }

def validate_token(
    token: str,
    secret_key: Optional[str] = None
) -> Optional[Dict[str, Any]]:
    """
    Validate a JWT and return its claims.

    Args:
        token: The JWT to validate
        secret_key: Verification key, defaults to the configured SECRET_KEY

    Returns:
        Dict with ``user_id`` and ``token_id`` if valid, None otherwise
    """
    try:
        payload = jwt.decode(
            token,
            secret_key or get_settings().SECRET_KEY,
            algorithms=[ALGORITHM],
            options={"require": ["sub", "exp"]}
        )
    except jwt.ExpiredSignatureError:
        logger.warning("Token has expired")
        return None
    except jwt.InvalidTokenError as e:
        logger.warning(f"Invalid token: {str(e)}")
        return None

    return {
        "user_id": payload["sub"],
        "token_id": payload.get("jti"),
        "expires_at": datetime.fromtimestamp(payload["exp"], tz=timezone.utc)
    }
