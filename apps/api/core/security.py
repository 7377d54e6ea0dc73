"""
Access token verification.

Supabase Auth issues HS256 JWTs signed with the project's JWT secret.
The subject claim is the user id; the audience is "authenticated" for
signed-in users.

SECURITY REQUIREMENTS:
- SUPABASE_JWT_SECRET must be set via environment variable
- SUPABASE_JWT_SECRET must NEVER be committed to source control
"""
from typing import Optional, Dict
from jose import JWTError, jwt
from core.config import settings

ALGORITHM = "HS256"


def decode_access_token(token: str, secret: Optional[str] = None) -> Optional[Dict]:
    """Decode and validate a Supabase access token. Returns None if invalid."""
    key = secret or settings.SUPABASE_JWT_SECRET
    if not key or not token:
        return None
    try:
        return jwt.decode(
            token,
            key,
            algorithms=[ALGORITHM],
            audience=settings.SUPABASE_JWT_AUDIENCE,
        )
    except JWTError:
        return None

