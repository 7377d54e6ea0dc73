"""
Role-Gated Router

Decides, for every navigation request, whether the requested view renders
or where the user is sent instead. Decisions are pure functions of a
SessionSnapshot and never suspend.

Order of checks in decide():
1. Still resolving the session -> show a loading indicator
2. No identity -> login
3. Identity without a profile -> profile setup (unless already there)
4. Wrong role for the view -> the user's own dashboard
5. Otherwise render
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple, Union

from models import Role
from services.session_state import SessionSnapshot

LOGIN_PATH = "/login"
PROFILE_SETUP_PATH = "/profile-setup"
DASHBOARD_PATH = "/dashboard"
COACH_DASHBOARD_PATH = "/coach/dashboard"
PLAYER_DASHBOARD_PATH = "/player/dashboard"
HOME_PATH = "/"

_DASHBOARDS: Dict[Role, str] = {
    Role.COACH: COACH_DASHBOARD_PATH,
    Role.PLAYER: PLAYER_DASHBOARD_PATH,
}


class DecisionKind(str, Enum):
    SHOW_LOADING = "show_loading"
    REDIRECT = "redirect"
    RENDER = "render"
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class RoutingDecision:
    kind: DecisionKind
    target: Optional[str] = None
    params: Dict[str, str] = field(default_factory=dict, compare=False)

    @classmethod
    def show_loading(cls) -> "RoutingDecision":
        return cls(DecisionKind.SHOW_LOADING)

    @classmethod
    def redirect(cls, path: str) -> "RoutingDecision":
        return cls(DecisionKind.REDIRECT, path)

    @classmethod
    def render(cls, view: Optional[str], params: Optional[Dict[str, str]] = None) -> "RoutingDecision":
        return cls(DecisionKind.RENDER, view, dict(params or {}))

    @classmethod
    def not_found(cls, path: str) -> "RoutingDecision":
        return cls(DecisionKind.NOT_FOUND, path)


def role_dashboard(role: Union[Role, str]) -> str:
    """Dashboard path for a role. Raises ValueError for anything but coach/player."""
    return _DASHBOARDS[Role(role)]


def decide(
    snapshot: SessionSnapshot,
    required_role: Optional[Role] = None,
    view: Optional[str] = None,
) -> RoutingDecision:
    """Routing decision for a protected view."""
    if snapshot.loading:
        return RoutingDecision.show_loading()

    if snapshot.identity is None:
        return RoutingDecision.redirect(LOGIN_PATH)

    if snapshot.profile is None:
        if view == PROFILE_SETUP_PATH:
            return RoutingDecision.render(view)
        return RoutingDecision.redirect(PROFILE_SETUP_PATH)

    if required_role is not None and snapshot.profile.role != Role(required_role).value:
        return RoutingDecision.redirect(role_dashboard(snapshot.profile.role))

    return RoutingDecision.render(view)


# =============================================================================
# ROUTE TABLE
# =============================================================================

@dataclass(frozen=True)
class RouteSpec:
    pattern: str
    required_role: Optional[Role] = None
    public: bool = False

    @property
    def _regex(self) -> "re.Pattern[str]":
        parts = []
        for segment in self.pattern.strip("/").split("/"):
            if segment.startswith(":"):
                parts.append(f"(?P<{segment[1:]}>[^/]+)")
            else:
                parts.append(re.escape(segment))
        return re.compile("^/" + "/".join(parts) + "/?$")

    def match(self, path: str) -> Optional[Dict[str, str]]:
        found = self._regex.match(path)
        return found.groupdict() if found else None


ROUTES: List[RouteSpec] = [
    # Public
    RouteSpec(LOGIN_PATH, public=True),
    RouteSpec("/register", public=True),
    RouteSpec("/forgot-password", public=True),
    RouteSpec("/invite/:token", public=True),
    # Session entry points
    RouteSpec(PROFILE_SETUP_PATH),
    RouteSpec(DASHBOARD_PATH),
    RouteSpec(COACH_DASHBOARD_PATH, Role.COACH),
    RouteSpec(PLAYER_DASHBOARD_PATH, Role.PLAYER),
    # Coach
    RouteSpec("/coach/players", Role.COACH),
    RouteSpec("/coach/players/invite", Role.COACH),
    RouteSpec("/coach/players/:id", Role.COACH),
    RouteSpec("/coach/practices", Role.COACH),
    RouteSpec("/coach/practices/create", Role.COACH),
    RouteSpec("/coach/practices/:id/edit", Role.COACH),
    RouteSpec("/coach/practices/:id", Role.COACH),
    RouteSpec("/coach/progress", Role.COACH),
    RouteSpec("/coach/progress/:id", Role.COACH),
    RouteSpec("/coach/analytics", Role.COACH),
    RouteSpec("/coach/drills", Role.COACH),
    RouteSpec("/coach/announcements", Role.COACH),
    # Player
    RouteSpec("/player/announcements", Role.PLAYER),
    # Shared
    RouteSpec("/players"),
    RouteSpec("/coaches"),
    RouteSpec("/drills"),
    RouteSpec("/practices"),
    RouteSpec("/plans"),
    RouteSpec("/library"),
    RouteSpec("/files"),
    RouteSpec("/ai-assistant"),
    RouteSpec("/progress"),
]


def match_route(path: str) -> Optional[Tuple[RouteSpec, Dict[str, str]]]:
    """First route whose pattern matches the path. Literal routes are listed before :param ones."""
    for route in ROUTES:
        params = route.match(path)
        if params is not None:
            return route, params
    return None


def decide_for_path(snapshot: SessionSnapshot, path: str) -> RoutingDecision:
    """Resolve a concrete URL path against the route table."""
    path = path or HOME_PATH

    if path == HOME_PATH:
        if snapshot.loading:
            return RoutingDecision.show_loading()
        if snapshot.identity is None:
            return RoutingDecision.redirect(LOGIN_PATH)
        if snapshot.profile is None:
            return RoutingDecision.redirect(PROFILE_SETUP_PATH)
        return RoutingDecision.redirect(role_dashboard(snapshot.profile.role))

    matched = match_route(path)
    if matched is None:
        return RoutingDecision.not_found(path)
    route, params = matched

    if route.public:
        return RoutingDecision.render(route.pattern, params)

    decision = decide(snapshot, route.required_role, route.pattern)
    if decision.kind is not DecisionKind.RENDER:
        return decision

    # Entry points forward once the profile exists.
    if route.pattern in (DASHBOARD_PATH, PROFILE_SETUP_PATH) and snapshot.profile is not None:
        return RoutingDecision.redirect(role_dashboard(snapshot.profile.role))

    return RoutingDecision.render(route.pattern, params)
