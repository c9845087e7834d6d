"""
FastAPI dependencies for authentication.
"""
from typing import Annotated
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.core.errors import StorageUnavailableError, UnauthenticatedError
from app.features.users.models import User
from app.features.users.auth import verify_jwt_token
from app.utils import get_logger


log = get_logger(__name__)

# auto_error=False so a missing header goes through UnauthenticatedError
security = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    db: Annotated[AsyncSession, Depends(get_db)]
) -> User:
    """
    Get the current authenticated user from the bearer token.
    
    Usage:
        @router.get("/me")
        async def get_me(user: User = Depends(get_current_user)):
            return user
    """
    if credentials is None:
        raise UnauthenticatedError()
    
    payload = verify_jwt_token(credentials.credentials)
    
    try:
        user = await db.scalar(select(User).where(User.id == payload["sub"]))
    except SQLAlchemyError as e:
        log.warning("User lookup failed: %s", e)
        raise StorageUnavailableError() from e
    
    if user is None or not user.is_active:
        raise UnauthenticatedError("Unknown or deactivated user")
    
    return user


def get_authorization_header(request) -> str:
    """
    Extract authorization header for rate limiting.
    Used with slowapi Limiter.
    """
    auth = request.headers.get("Authorization", "")
    return auth or "anonymous"
