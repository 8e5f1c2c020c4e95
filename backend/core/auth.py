"""
Auth utilities for the SMI badges API.

Authentication itself is delegated to the identity provider; this module only
verifies the provider's ID token and extracts the user id from its `sub`
claim. Falls back to the X-User-Id header (tests, trusted gateways).
"""
from fastapi import Header, HTTPException, Request
from typing import Optional
from backend.core.config import settings
import jwt
import logging

logger = logging.getLogger(__name__)


def _algorithms() -> list[str]:
    return [a.strip() for a in settings.AUTH_JWT_ALGORITHMS.split(",") if a.strip()]


def verify_id_token(token: str) -> Optional[str]:
    """
    Verify an identity-provider JWT and extract user_id.

    Returns None when no verification secret is configured.

    Raises:
        HTTPException 401: Invalid or expired token
    """
    if not settings.AUTH_JWT_SECRET:
        logger.debug("No AUTH_JWT_SECRET configured, skipping JWT validation")
        return None

    try:
        payload = jwt.decode(
            token,
            settings.AUTH_JWT_SECRET,
            algorithms=_algorithms(),
            options={"verify_signature": True, "verify_exp": True, "verify_aud": False},
        )
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired")
    except jwt.InvalidTokenError as e:
        logger.debug(f"Invalid token: {e}")
        raise HTTPException(status_code=401, detail="Invalid token")

    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(status_code=401, detail="Token has no subject")
    return user_id


def resolve_user_id(authorization: Optional[str], x_user_id: Optional[str]) -> Optional[str]:
    """Bearer token first, then the X-User-Id header. None when neither is present."""
    if authorization and authorization.startswith("Bearer "):
        user_id = verify_id_token(authorization[7:])
        if user_id:
            return user_id
    if x_user_id:
        return x_user_id
    return None


async def get_optional_user_id(
    request: Request,
    x_user_id: Optional[str] = Header(None, description="Fallback user ID"),
) -> Optional[str]:
    """Current user id, or None for anonymous callers."""
    return resolve_user_id(request.headers.get("Authorization"), x_user_id)


async def get_current_user_id(
    request: Request,
    x_user_id: Optional[str] = Header(None, description="Fallback user ID"),
) -> str:
    """
    Extract current user ID from request context.

    Priority:
    1. Bearer JWT from Authorization header
    2. X-User-Id header
    3. Raise 401 Unauthorized
    """
    user_id = resolve_user_id(request.headers.get("Authorization"), x_user_id)
    if user_id:
        return user_id

    raise HTTPException(
        status_code=401,
        detail="Missing Authorization (Bearer JWT) or X-User-Id header",
    )
