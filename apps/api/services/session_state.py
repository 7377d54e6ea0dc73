"""
Session State

The single process-wide record of who is signed in: raw identity, resolved
profile, a loading flag and the last error. Pure storage. The Auth
Coordinator is the only writer; the router, UI and feature services read
snapshots.

Every write replaces the whole snapshot at once, so a reader can never see
a new identity next to a profile that belongs to the previous one.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Callable, List, Optional

from models import Identity, Profile, Role

logger = logging.getLogger(__name__)

SnapshotListener = Callable[["SessionSnapshot"], None]

_UNSET = object()


@dataclass(frozen=True)
class SessionSnapshot:
    identity: Optional[Identity] = None
    profile: Optional[Profile] = None
    loading: bool = True
    error: Optional[str] = None

    def __post_init__(self):
        if self.profile is not None:
            if self.identity is None:
                raise ValueError("Session profile set without an identity")
            if self.profile.id != self.identity.id:
                raise ValueError(
                    f"Session profile {self.profile.id} does not belong to identity {self.identity.id}"
                )

    @property
    def is_authenticated(self) -> bool:
        return self.identity is not None

    @property
    def needs_profile_setup(self) -> bool:
        return self.identity is not None and self.profile is None

    @property
    def role(self) -> Optional[Role]:
        return Role(self.profile.role) if self.profile is not None else None

    @property
    def is_coach(self) -> bool:
        return self.role is Role.COACH

    @property
    def is_player(self) -> bool:
        return self.role is Role.PLAYER


class SessionStore:
    """
    Observable single-writer container for the current SessionSnapshot.

    Listeners are called synchronously after each write with the new
    snapshot. A failing listener is logged and does not affect the others.
    """

    def __init__(self, initial: Optional[SessionSnapshot] = None):
        self._snapshot = initial or SessionSnapshot()
        self._listeners: List[SnapshotListener] = []

    @property
    def snapshot(self) -> SessionSnapshot:
        return self._snapshot

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def apply(
        self,
        *,
        identity=_UNSET,
        profile=_UNSET,
        loading=_UNSET,
        error=_UNSET,
    ) -> SessionSnapshot:
        """Replace any subset of fields as one observable update."""
        changes = {}
        if identity is not _UNSET:
            changes["identity"] = identity
            # Clearing identity clears the profile in the same transition.
            if identity is None and profile is _UNSET:
                changes["profile"] = None
        if profile is not _UNSET:
            changes["profile"] = profile
        if loading is not _UNSET:
            changes["loading"] = bool(loading)
        if error is not _UNSET:
            changes["error"] = error

        new_snapshot = replace(self._snapshot, **changes)
        if new_snapshot == self._snapshot:
            return self._snapshot

        self._snapshot = new_snapshot
        self._notify()
        return new_snapshot

    def set_identity(self, identity: Optional[Identity]) -> SessionSnapshot:
        return self.apply(identity=identity)

    def set_profile(self, profile: Optional[Profile]) -> SessionSnapshot:
        return self.apply(profile=profile)

    def set_loading(self, loading: bool) -> SessionSnapshot:
        return self.apply(loading=loading)

    def set_error(self, error: Optional[str]) -> SessionSnapshot:
        return self.apply(error=error)

    def clear(self) -> SessionSnapshot:
        """Null identity and profile, drop the error and stop loading."""
        return self.apply(identity=None, profile=None, loading=False, error=None)

    def current_user_id(self) -> Optional[str]:
        """Identifier used by feature services to stamp ownership."""
        snapshot = self._snapshot
        if snapshot.profile is not None:
            return snapshot.profile.id
        if snapshot.identity is not None:
            return snapshot.identity.id
        return None

    def _notify(self) -> None:
        snapshot = self._snapshot
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception as e:
                logger.error(f"Session listener failed: {e}", exc_info=True)
