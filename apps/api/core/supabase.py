"""
Supabase client management.

Two kinds of client are used:
- A service-role client shared by the HTTP handlers. It bypasses row level
  security, so handlers must enforce ownership themselves.
- Anon-key clients for the session layer, one per signed-in application
  shell, because each carries its own auth session.
"""
import logging
from typing import Optional

from supabase import AsyncClient, acreate_client

from core.config import settings

logger = logging.getLogger(__name__)

# Service-role client (singleton)
_service_client: Optional[AsyncClient] = None


async def create_anon_client() -> AsyncClient:
    """Create a client authenticated with the public anon key."""
    if not settings.SUPABASE_ANON_KEY:
        raise RuntimeError("SUPABASE_ANON_KEY is not configured")
    return await acreate_client(settings.SUPABASE_URL, settings.SUPABASE_ANON_KEY)


async def get_service_client() -> AsyncClient:
    """Return the shared service-role client, creating it on first use."""
    global _service_client

    if _service_client is not None:
        return _service_client

    if not settings.SUPABASE_SERVICE_ROLE_KEY:
        raise RuntimeError("SUPABASE_SERVICE_ROLE_KEY is not configured")

    _service_client = await acreate_client(
        settings.SUPABASE_URL, settings.SUPABASE_SERVICE_ROLE_KEY
    )
    logger.info("Supabase service client initialised")
    return _service_client


async def get_supabase() -> AsyncClient:
    """FastAPI dependency returning the service-role client."""
    return await get_service_client()


def reset_service_client() -> None:
    """Drop the cached client (tests, credential rotation)."""
    global _service_client
    _service_client = None
