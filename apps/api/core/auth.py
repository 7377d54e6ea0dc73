"""
Authentication dependencies for the HTTP handlers.

Provides FastAPI dependencies for:
- Getting the current authenticated user from a Supabase access token
"""
import logging
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
import httpx
from supabase import AsyncClient
from supabase import AuthError as SupabaseAuthError

from core.config import settings
from core.exceptions import UnauthorizedError
from core.security import decode_access_token
from core.supabase import get_supabase
from models import AuthenticatedUser

logger = logging.getLogger(__name__)

# Use auto_error=False to handle missing credentials manually and return 401 (not 403)
security = HTTPBearer(auto_error=False)


async def resolve_user_from_token(token: str, client: AsyncClient) -> Optional[AuthenticatedUser]:
    """
    Verify an access token and return the user it belongs to.

    Tokens are verified locally when the JWT secret is configured. Otherwise
    the auth server is asked, which also catches revoked sessions.
    """
    if settings.SUPABASE_JWT_SECRET:
        payload = decode_access_token(token)
        if not payload or not payload.get("sub"):
            return None
        return AuthenticatedUser(id=payload["sub"], email=payload.get("email"))

    try:
        response = await client.auth.get_user(token)
    except (SupabaseAuthError, httpx.HTTPError) as e:
        logger.warning(f"Token verification against auth server failed: {e}")
        return None

    user = getattr(response, "user", None) if response else None
    if user is None:
        return None
    return AuthenticatedUser(id=str(user.id), email=user.email)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    client: AsyncClient = Depends(get_supabase),
) -> AuthenticatedUser:
    """
    Get the current authenticated user from the bearer token.

    Raises UnauthorizedError if the token is missing or invalid.
    """
    if not credentials:
        raise UnauthorizedError()

    user = await resolve_user_from_token(credentials.credentials, client)
    if user is None:
        raise UnauthorizedError()
    return user

