"""
Authentication dependencies

Requests carry a Clerk session JWT, either as a Bearer token or in the
__session cookie. Tokens are verified locally against Clerk's PEM public
key; the matching local user is created on first sight.
"""
from typing import Any, Dict, Optional

import jwt
from fastapi import Depends, HTTPException, Request, Response, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from tavlo.core.config import get_settings
from tavlo.core.database import get_db
from tavlo.core.errors import AuthenticationError, RateLimitExceededError
from tavlo.core.logging_config import LoggingConfig
from tavlo.models.user import User
from tavlo.services.rate_limiter import RateLimiter
from tavlo.services.user_service import get_or_create_user

logger = LoggingConfig.get_logger(__name__)

SESSION_COOKIE = "__session"

# HTTP Bearer security scheme
security = HTTPBearer(auto_error=False)


def decode_session_token(token: str) -> Dict[str, Any]:
    """
    Verify a Clerk session token and return its claims

    Raises:
        AuthenticationError: key not configured, bad signature, expired, wrong issuer
    """
    settings = get_settings()
    if not settings.clerk_jwt_public_key:
        raise AuthenticationError("Authentication is not configured")

    options = {"require": ["exp", "sub"]}
    try:
        return jwt.decode(
            token,
            settings.clerk_jwt_public_key,
            algorithms=["RS256"],
            issuer=settings.clerk_issuer or None,
            options=options,
            leeway=5,
        )
    except jwt.PyJWTError as e:
        raise AuthenticationError(f"Invalid session token: {e}") from e


def _unauthorized(detail: str = "Authentication required") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> User:
    """
    Require authentication: return the local User or raise 401
    """
    token = credentials.credentials if credentials else request.cookies.get(SESSION_COOKIE)
    if not token:
        raise _unauthorized()

    try:
        claims = decode_session_token(token)
    except AuthenticationError as e:
        logger.warning(f"Rejected session token: {e}")
        raise _unauthorized("Invalid or expired session")

    user = get_or_create_user(db, claims["sub"], claims.get("email"))
    LoggingConfig.set_context(user_id=str(user.id))
    return user


def rate_limited(
    response: Response,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> User:
    """
    Apply the item-creation rate limits to the current user

    Raises RateLimitExceededError (429 with Retry-After) when a window is
    exhausted.
    """
    settings = get_settings()
    if not settings.rate_limit_enabled:
        return current_user

    result = RateLimiter(db).check(f"items:create:{current_user.id}", settings.item_rate_limits)
    if not result.success:
        raise RateLimitExceededError(
            "Too many requests. Please slow down.",
            retry_after=result.retry_after,
            limit=result.limit,
            reset=result.reset,
        )
    response.headers.update({
        "X-RateLimit-Limit": str(result.limit),
        "X-RateLimit-Remaining": str(result.remaining),
        "X-RateLimit-Reset": str(result.reset),
    })
    return current_user
