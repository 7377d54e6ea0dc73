"""
Identity Provider Adapter

Wraps the external auth provider's sign-in, sign-up, sign-out and
session-change primitives behind one contract. Provider failures surface as
AuthError(code, message); the Auth Coordinator turns them into result
values for the UI.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Optional

import httpx
from supabase import AsyncClient
from supabase import AuthError as SupabaseAuthError

from core.config import settings
from core.exceptions import AuthError
from models import Identity

logger = logging.getLogger(__name__)

IdentityListener = Callable[[Optional[Identity]], None]
Unsubscribe = Callable[[], None]


class IdentityProvider(ABC):
    """
    Contract every identity provider must satisfy.

    subscribe() invokes the listener once immediately with the current
    identity (or None), then exactly once per identity transition, in the
    order the provider fires them. Listener calls never overlap.
    """

    @abstractmethod
    async def sign_in_with_password(self, email: str, password: str) -> Identity:
        pass

    @abstractmethod
    async def register_with_password(self, email: str, password: str) -> Identity:
        pass

    @abstractmethod
    async def sign_in_with_oauth(self, provider: str) -> str:
        """Start a redirect-based flow and return the URL to send the user to."""
        pass

    @abstractmethod
    async def sign_out(self) -> None:
        pass

    @abstractmethod
    async def reset_password(self, email: str) -> None:
        pass

    @abstractmethod
    async def update_password(self, new_password: str) -> None:
        pass

    @abstractmethod
    async def subscribe(self, on_change: IdentityListener) -> Unsubscribe:
        pass


def identity_from_user(user: Any) -> Optional[Identity]:
    """Build an Identity from a Supabase auth user (or None)."""
    if user is None:
        return None
    metadata = getattr(user, "user_metadata", None) or {}
    return Identity(
        id=str(user.id),
        email=getattr(user, "email", None),
        display_name=metadata.get("full_name") or metadata.get("name") or metadata.get("display_name"),
        avatar_url=metadata.get("avatar_url") or metadata.get("picture"),
    )


def _auth_error(exc: Exception) -> AuthError:
    if isinstance(exc, SupabaseAuthError):
        code = getattr(exc, "code", None) or getattr(exc, "name", None) or "unknown"
        return AuthError(str(code), getattr(exc, "message", None) or str(exc))
    if isinstance(exc, httpx.HTTPError):
        return AuthError("network_error", str(exc) or "Network request failed")
    return AuthError("unknown", str(exc))


class SupabaseIdentityProvider(IdentityProvider):
    """Identity provider backed by Supabase Auth (GoTrue)."""

    def __init__(self, client: AsyncClient, redirect_base_url: Optional[str] = None):
        self.client = client
        self.redirect_base_url = (redirect_base_url or settings.APP_BASE_URL).rstrip("/")

    async def sign_in_with_password(self, email: str, password: str) -> Identity:
        try:
            response = await self.client.auth.sign_in_with_password(
                {"email": email, "password": password}
            )
        except (SupabaseAuthError, httpx.HTTPError) as e:
            raise _auth_error(e) from e

        identity = identity_from_user(response.user)
        if identity is None:
            raise AuthError("no_user", "Sign-in returned no user")
        return identity

    async def register_with_password(self, email: str, password: str) -> Identity:
        try:
            response = await self.client.auth.sign_up({"email": email, "password": password})
        except (SupabaseAuthError, httpx.HTTPError) as e:
            raise _auth_error(e) from e

        identity = identity_from_user(response.user)
        if identity is None:
            raise AuthError("signup_failed", "User creation failed")
        return identity

    async def sign_in_with_oauth(self, provider: str) -> str:
        try:
            response = await self.client.auth.sign_in_with_oauth(
                {
                    "provider": provider,
                    "options": {"redirect_to": f"{self.redirect_base_url}/auth/callback"},
                }
            )
        except (SupabaseAuthError, httpx.HTTPError) as e:
            raise _auth_error(e) from e
        return response.url

    async def sign_out(self) -> None:
        try:
            await self.client.auth.sign_out()
        except (SupabaseAuthError, httpx.HTTPError) as e:
            raise _auth_error(e) from e

    async def reset_password(self, email: str) -> None:
        try:
            await self.client.auth.reset_password_for_email(
                email, {"redirect_to": f"{self.redirect_base_url}/auth/reset-password"}
            )
        except (SupabaseAuthError, httpx.HTTPError) as e:
            raise _auth_error(e) from e

    async def update_password(self, new_password: str) -> None:
        try:
            await self.client.auth.update_user({"password": new_password})
        except (SupabaseAuthError, httpx.HTTPError) as e:
            raise _auth_error(e) from e

    async def subscribe(self, on_change: IdentityListener) -> Unsubscribe:
        """
        Deliver the current identity, then every identity transition.

        Token refreshes that keep the same user are not transitions and are
        filtered out here.
        """
        try:
            session = await self.client.auth.get_session()
        except (SupabaseAuthError, httpx.HTTPError) as e:
            logger.warning(f"Could not read current session, starting signed out: {e}")
            session = None

        last: Optional[Identity] = identity_from_user(session.user) if session else None
        on_change(last)

        def _listener(event: str, new_session: Any) -> None:
            nonlocal last
            identity = identity_from_user(new_session.user) if new_session else None
            if identity == last:
                logger.debug(f"Auth event {event} did not change identity")
                return
            last = identity
            logger.info(
                f"Auth event {event}",
                extra={"extra_fields": {"event": event, "user_id": identity.id if identity else None}},
            )
            on_change(identity)

        subscription = self.client.auth.on_auth_state_change(_listener)
        return subscription.unsubscribe
