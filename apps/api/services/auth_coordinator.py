"""
Auth Coordinator

Owns the identity-change subscription and is the only writer of Session
State. Every delivered identity restarts resolution from scratch:

    UNINITIALIZED -> RESOLVING -> AUTHENTICATED_COMPLETE
                               -> AUTHENTICATED_NEEDS_SETUP
                               -> UNAUTHENTICATED
                               -> ERROR

Resolution runs as an asyncio task tagged with a monotonically increasing
sequence number. A newer event cancels the older task, and a result is only
committed when its sequence is still the latest and the coordinator has not
been stopped, so a slow lookup for a previous identity can never overwrite
the session of the current one.

Actions (sign in, register, sign out...) return ActionResult values and
never write Session State; the subscription observes their effect.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Generic, Optional, TypeVar, Union

from core.exceptions import AuthError, CoachingError, ProfileNotFoundError
from core.supabase import create_anon_client
from models import Identity, Profile, ProfileInput, ProfilePatch, Role
from services.identity_provider import IdentityProvider, SupabaseIdentityProvider, Unsubscribe
from services.profile_store import ProfileStore, SupabaseProfileStore, coerce_profile_input
from services.route_guard import RoutingDecision, decide, decide_for_path
from services.session_state import SessionSnapshot, SessionStore

logger = logging.getLogger(__name__)

T = TypeVar("T")


class AuthState(str, Enum):
    UNINITIALIZED = "uninitialized"
    RESOLVING = "resolving"
    AUTHENTICATED_COMPLETE = "authenticated_complete"
    AUTHENTICATED_NEEDS_SETUP = "authenticated_needs_setup"
    UNAUTHENTICATED = "unauthenticated"
    ERROR = "error"


@dataclass(frozen=True)
class ActionResult(Generic[T]):
    """Outcome of a UI action. Exactly one of value/error is meaningful."""

    value: Optional[T] = None
    error: Optional[CoachingError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class AuthCoordinator:
    def __init__(
        self,
        identity_provider: IdentityProvider,
        profile_store: ProfileStore,
        store: Optional[SessionStore] = None,
    ):
        self.identity_provider = identity_provider
        self.profile_store = profile_store
        self.store = store or SessionStore()

        self._state = AuthState.UNINITIALIZED
        self._seq = 0
        self._active = False
        self._identity: Optional[Identity] = None
        self._task: Optional[asyncio.Task] = None
        self._unsubscribe: Optional[Unsubscribe] = None

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def start(self) -> None:
        """Subscribe to identity changes. The provider delivers the current identity immediately."""
        if self._active:
            return
        self._active = True
        self._unsubscribe = await self.identity_provider.subscribe(self._on_identity_change)
        logger.info("Auth coordinator started")

    async def stop(self) -> None:
        """Unsubscribe and drop any in-flight resolution. No writes happen after this."""
        self._active = False
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

        task = self._task
        self._task = None
        if task is not None and not task.done():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
        logger.info("Auth coordinator stopped")

    @property
    def active(self) -> bool:
        return self._active

    @property
    def state(self) -> AuthState:
        return self._state

    @property
    def snapshot(self) -> SessionSnapshot:
        return self.store.snapshot

    async def wait_until_settled(self) -> SessionSnapshot:
        """Wait for the latest resolution (and any it was superseded by) to finish."""
        while True:
            task = self._task
            if task is None or task.done():
                return self.store.snapshot
            await asyncio.wait({task})

    async def refresh(self) -> SessionSnapshot:
        """Resolve the current identity again, e.g. after an error or profile setup."""
        if not self._active:
            return self.store.snapshot
        self._on_identity_change(self._identity)
        return await self.wait_until_settled()

    # -------------------------------------------------------------------------
    # Subscription path
    # -------------------------------------------------------------------------

    def _on_identity_change(self, identity: Optional[Identity]) -> None:
        if not self._active:
            return

        self._seq += 1
        seq = self._seq
        self._identity = identity

        previous = self._task
        if previous is not None and not previous.done():
            previous.cancel()

        self._state = AuthState.RESOLVING
        self.store.apply(loading=True)
        self._task = asyncio.get_running_loop().create_task(self._resolve(identity, seq))

    async def _resolve(self, identity: Optional[Identity], seq: int) -> None:
        if identity is None:
            self._commit(seq, AuthState.UNAUTHENTICATED, identity=None, profile=None, error=None)
            return

        try:
            profile = await self.profile_store.get(identity.id)
        except ProfileNotFoundError:
            logger.info(f"No profile yet for {identity.id}, profile setup required")
            self._commit(
                seq, AuthState.AUTHENTICATED_NEEDS_SETUP, identity=identity, profile=None, error=None
            )
            return
        except Exception as e:
            message = getattr(e, "message", None) or str(e) or type(e).__name__
            logger.warning(
                f"Profile lookup failed for {identity.id}: {message}",
                extra={"extra_fields": {"user_id": identity.id, "seq": seq}},
            )
            self._commit(seq, AuthState.ERROR, identity=identity, profile=None, error=message)
            return

        if profile.id != identity.id:
            logger.error(f"Profile store returned {profile.id} for identity {identity.id}")
            self._commit(
                seq,
                AuthState.ERROR,
                identity=identity,
                profile=None,
                error="Profile does not match the signed-in user",
            )
            return

        self._commit(
            seq, AuthState.AUTHENTICATED_COMPLETE, identity=identity, profile=profile, error=None
        )

    def _commit(self, seq: int, state: AuthState, **changes: Any) -> bool:
        if not self._active:
            logger.debug(f"Dropping resolution {seq}: coordinator stopped")
            return False
        if seq != self._seq:
            logger.debug(f"Dropping stale resolution {seq} (latest {self._seq})")
            return False

        self._state = state
        self.store.apply(loading=False, **changes)
        return True

    # -------------------------------------------------------------------------
    # Actions
    # -------------------------------------------------------------------------

    async def _run_action(self, action: str, call: Callable[[], Awaitable[T]]) -> ActionResult[T]:
        try:
            value = await call()
        except CoachingError as e:
            logger.warning(f"{action} failed: {e.message}")
            return ActionResult(error=e)
        except Exception as e:
            logger.error(f"{action} failed unexpectedly: {e}", exc_info=True)
            return ActionResult(error=AuthError("unknown", str(e) or type(e).__name__))
        return ActionResult(value=value)

    async def sign_in_with_password(self, email: str, password: str) -> ActionResult[Identity]:
        return await self._run_action(
            "Sign in",
            lambda: self.identity_provider.sign_in_with_password(email, password),
        )

    async def register_with_password(
        self,
        email: str,
        password: str,
        display_name: str,
        role: Union[Role, str],
        organization: Optional[str] = None,
        position: Optional[str] = None,
        coach_id: Optional[str] = None,
    ) -> ActionResult[Profile]:
        """
        Create the account, then its profile with the chosen role.

        The subscription sees the new identity on its own and may look the
        profile up before create() lands; in that case the session settles
        in AUTHENTICATED_NEEDS_SETUP and is re-resolved once create() returns.
        """
        try:
            profile_input = coerce_profile_input(
                {
                    "email": email,
                    "display_name": display_name,
                    "role": role.value if isinstance(role, Role) else role,
                    "organization": organization,
                    "position": position,
                    "coach_id": coach_id,
                }
            )
        except CoachingError as e:
            return ActionResult(error=e)

        async def _register() -> Profile:
            identity = await self.identity_provider.register_with_password(email, password)
            return await self.profile_store.create(identity.id, profile_input)

        result = await self._run_action("Registration", _register)
        if result.ok:
            await self._refresh_if_pending(result.value.id)
        return result

    async def sign_in_with_oauth(self, provider: str) -> ActionResult[str]:
        return await self._run_action(
            "OAuth sign in",
            lambda: self.identity_provider.sign_in_with_oauth(provider),
        )

    async def sign_out(self) -> ActionResult[None]:
        return await self._run_action("Sign out", self.identity_provider.sign_out)

    async def reset_password(self, email: str) -> ActionResult[None]:
        return await self._run_action(
            "Password reset",
            lambda: self.identity_provider.reset_password(email),
        )

    async def update_password(self, new_password: str) -> ActionResult[None]:
        return await self._run_action(
            "Password update",
            lambda: self.identity_provider.update_password(new_password),
        )

    async def complete_profile_setup(
        self, data: Union[ProfileInput, Dict[str, Any]]
    ) -> ActionResult[Profile]:
        """Create the profile for the signed-in identity (profile-setup page)."""
        identity = self._identity
        if identity is None:
            return ActionResult(error=AuthError("not_authenticated", "Sign in before setting up a profile"))

        if isinstance(data, dict):
            data = dict(data)
            data.setdefault("email", identity.email)
            data.setdefault("display_name", identity.display_name)

        result = await self._run_action(
            "Profile setup",
            lambda: self.profile_store.create(identity.id, data),
        )
        if result.ok:
            await self._refresh_if_pending(identity.id)
        return result

    async def update_profile(
        self, patch: Union[ProfilePatch, Dict[str, Any]]
    ) -> ActionResult[Profile]:
        identity = self._identity
        if identity is None:
            return ActionResult(error=AuthError("not_authenticated", "Sign in to update your profile"))

        result = await self._run_action(
            "Profile update",
            lambda: self.profile_store.update(identity.id, patch),
        )
        if result.ok and self._identity is not None and self._identity.id == identity.id:
            await self.refresh()
        return result

    async def _refresh_if_pending(self, identifier: str) -> None:
        if self._identity is None or self._identity.id != identifier:
            return
        if self._state in (AuthState.RESOLVING, AuthState.AUTHENTICATED_NEEDS_SETUP):
            await self.refresh()

    # -------------------------------------------------------------------------
    # Readers
    # -------------------------------------------------------------------------

    def decide(self, required_role: Optional[Role] = None, view: Optional[str] = None) -> RoutingDecision:
        return decide(self.store.snapshot, required_role, view)

    def decide_for_path(self, path: str) -> RoutingDecision:
        return decide_for_path(self.store.snapshot, path)

    def current_user_id(self) -> Optional[str]:
        return self.store.current_user_id()


async def create_coordinator(client=None, start: bool = True) -> AuthCoordinator:
    """Wire a coordinator to Supabase Auth and the `profiles` table."""
    if client is None:
        client = await create_anon_client()
    coordinator = AuthCoordinator(SupabaseIdentityProvider(client), SupabaseProfileStore(client))
    if start:
        await coordinator.start()
    return coordinator
