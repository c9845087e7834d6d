"""
Bearer token verification.

Token issuance lives outside this service; here we only check an HS256 JWT and
read the local user id from its `sub` claim.
"""
from datetime import datetime, timedelta, timezone

import jwt

from app.core import config
from app.core.errors import UnauthenticatedError


def verify_jwt_token(token: str) -> dict:
    """
    Verify a JWT and return its payload.
    
    Raises:
        UnauthenticatedError: If the token is invalid, expired or has no subject
    """
    try:
        payload = jwt.decode(
            token,
            config.JWT_SECRET,
            algorithms=[config.JWT_ALGORITHM],
            options={"require": ["sub"]},
        )
    except jwt.ExpiredSignatureError:
        raise UnauthenticatedError("Token has expired")
    except jwt.InvalidTokenError as e:
        raise UnauthenticatedError(f"Invalid token: {e}")
    return payload


def create_access_token(user_id: str, expires_in: timedelta = timedelta(hours=1)) -> str:
    """Mint a token for `user_id`. Used by scripts and tests."""
    now = datetime.now(timezone.utc)
    payload = {"sub": user_id, "iat": now, "exp": now + expires_in}
    return jwt.encode(payload, config.JWT_SECRET, algorithm=config.JWT_ALGORITHM)
