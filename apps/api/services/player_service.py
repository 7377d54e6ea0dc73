"""
Player Service

Player management on top of `profiles`. A player belongs to at most one
coach through `profiles.coach_id`; coaches browse and filter their roster,
link and unlink players, and search the wider player pool.

Players control what others see through `privacy_settings`. The player and
their coach always get the full record; anyone else gets the public card
plus whichever contact, address, social and age fields are not hidden.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Dict, List, Optional, Union

from core.exceptions import AccessDeniedError, RecordNotFoundError
from models import (
    CoachProfile,
    PlayerDetails,
    PlayerDetailsPatch,
    PlayerProfile,
    PlayerTeamSummary,
    PrivacySettings,
    VisiblePlayerProfile,
)
from services.supabase_repository import SupabaseRepository, ilike_any, to_row, utc_now_iso

logger = logging.getLogger(__name__)

TEAM_PLAYERS_TABLE = "team_players"
TEAMS_TABLE = "teams"
PROGRESS_VIEW = "player_progress_summary"

PLAYER_ROLE = "player"

# privacy flag -> fields it hides from other viewers
PRIVACY_FIELDS: Dict[str, tuple] = {
    "hide_email": ("email",),
    "hide_phone": ("phone",),
    "hide_address": ("address_line1", "city", "state"),
    "hide_social": ("instagram_handle", "twitter_handle"),
    "hide_age": ("date_of_birth", "age"),
}


class PlayerService(SupabaseRepository[PlayerDetails]):
    table_name = "profiles"
    model = PlayerDetails
    resource = "Player"

    def _players(self):
        return self._table().select("*").eq("role", PLAYER_ROLE)

    async def get(self, player_id: str) -> PlayerDetails:
        row = await self._first(self._players().eq("id", player_id).limit(1), player_id)
        return self._parse(row)

    # -------------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------------

    async def players_by_coach(self, coach_id: Optional[str] = None) -> List[PlayerProfile]:
        coach_id = self._require_user_id(coach_id)
        rows = await self._rows(self._players().eq("coach_id", coach_id).order("display_name"))
        return self._parse_many(rows, PlayerProfile)

    async def player_profile(self, player_id: str) -> PlayerDetails:
        """Full player record with the teams they play on."""
        player = await self.get(player_id)
        return player.model_copy(update={"teams": await self.player_teams(player_id)})

    async def player_teams(self, player_id: str) -> List[PlayerTeamSummary]:
        memberships = await self._rows(
            self._table(TEAM_PLAYERS_TABLE).select("team_id").eq("player_id", player_id), "roster lookup"
        )
        team_ids = sorted({row["team_id"] for row in memberships if row.get("team_id")})
        if not team_ids:
            return []
        rows = await self._rows(
            self._table(TEAMS_TABLE).select("id,name,season").in_("id", team_ids).order("name"), "team lookup"
        )
        return [PlayerTeamSummary(team_id=row["id"], team_name=row["name"], season=row.get("season")) for row in rows]

    async def player_coach(self, player_id: Optional[str] = None) -> CoachProfile:
        player_id = self._require_user_id(player_id)
        player = await self.get(player_id)
        if not player.coach_id:
            raise RecordNotFoundError("Coach", f"for player {player_id}")
        row = await self._first(
            self._table().select("*").eq("id", player.coach_id).eq("role", "coach").limit(1),
            player.coach_id,
            "coach lookup",
        )
        return self._parse(row, CoachProfile)

    async def search_players(self, term: str, coach_id: Optional[str] = None, limit: int = 20) -> List[PlayerProfile]:
        """Players whose name or email contains `term`, optionally only one coach's."""
        if not term or not term.strip():
            return []
        query = self._players().or_(ilike_any(["display_name", "email"], term.strip()))
        if coach_id:
            query = query.eq("coach_id", coach_id)
        rows = await self._rows(query.order("display_name").limit(limit), "search")
        return self._parse_many(rows, PlayerProfile)

    async def coach_players(
        self,
        coach_id: Optional[str] = None,
        search: Optional[str] = None,
        position: Optional[str] = None,
        skill_level: Optional[str] = None,
        team_id: Optional[str] = None,
        age_min: Optional[int] = None,
        age_max: Optional[int] = None,
        has_photo: Optional[bool] = None,
        today: Optional[date] = None,
    ) -> List[PlayerDetails]:
        """A coach's roster with the full records, filtered and sorted by name."""
        query = self._players().eq("coach_id", self._require_user_id(coach_id))
        if search and search.strip():
            query = query.or_(ilike_any(["display_name", "email", "position"], search.strip()))
        if position:
            query = query.eq("position", position)
        if skill_level:
            query = query.eq("skill_level", skill_level)
        if has_photo is True:
            query = query.not_.is_("photo_url", "null")
        elif has_photo is False:
            query = query.is_("photo_url", "null")
        if team_id:
            memberships = await self._rows(
                self._table(TEAM_PLAYERS_TABLE).select("player_id").eq("team_id", team_id), "roster lookup"
            )
            player_ids = sorted({row["player_id"] for row in memberships})
            if not player_ids:
                return []
            query = query.in_("id", player_ids)

        players = self._parse_many(await self._rows(query.order("display_name")))
        if age_min is None and age_max is None:
            return players

        # age comes from date_of_birth, so range filtering happens here
        kept = []
        for player in players:
            age = player.age(today)
            if age is None:
                continue
            if age_min is not None and age < age_min:
                continue
            if age_max is not None and age > age_max:
                continue
            kept.append(player)
        return kept

    async def progress_summary(self, player_id: Optional[str] = None) -> Optional[Dict[str, Any]]:
        """Row from the progress summary view, or None for a player with no activity."""
        rows = await self._rows(
            self._table(PROGRESS_VIEW).select("*").eq("player_id", self._require_user_id(player_id)).limit(1),
            "progress lookup",
        )
        return rows[0] if rows else None

    # -------------------------------------------------------------------------
    # Coach link
    # -------------------------------------------------------------------------

    async def link_to_coach(self, player_id: str, coach_id: Optional[str] = None) -> PlayerDetails:
        coach_id = self._require_user_id(coach_id)
        coaches = await self._rows(
            self._table().select("id").eq("id", coach_id).eq("role", "coach").limit(1), "coach lookup"
        )
        if not coaches:
            raise RecordNotFoundError("Coach", coach_id)
        player = await self._set_columns(player_id, {"coach_id": coach_id}, "link")
        logger.info(f"Linked player {player_id} to coach {coach_id}")
        return player

    async def unlink_from_coach(self, player_id: str, coach_id: Optional[str] = None) -> PlayerDetails:
        """Clear the player's coach; a coach may only release their own players."""
        coach_id = self._require_user_id(coach_id)
        player = await self.get(player_id)
        if player.coach_id != coach_id:
            raise AccessDeniedError(f"Player {player_id} is not coached by {coach_id}")
        player = await self._set_columns(player_id, {"coach_id": None}, "unlink")
        logger.info(f"Unlinked player {player_id} from coach {coach_id}")
        return player

    # -------------------------------------------------------------------------
    # Updates
    # -------------------------------------------------------------------------

    async def _set_columns(self, player_id: str, changes: Dict[str, Any], action: str) -> PlayerDetails:
        changes = dict(changes, updated_at=utc_now_iso())
        row = await self._first(
            self._table().update(changes).eq("id", player_id).eq("role", PLAYER_ROLE), player_id, action
        )
        return self._parse(row)

    async def update_player(
        self,
        player_id: str,
        patch: Union[PlayerDetailsPatch, Dict[str, Any]],
    ) -> PlayerDetails:
        payload = patch if isinstance(patch, PlayerDetailsPatch) else PlayerDetailsPatch.model_validate(patch)
        changes = to_row(payload, partial=True)
        if not changes:
            return await self.get(player_id)
        return await self._set_columns(player_id, changes, "update")

    async def update_privacy(
        self,
        player_id: str,
        settings: Union[PrivacySettings, Dict[str, Any]],
    ) -> PrivacySettings:
        """Merge the given flags into the player's privacy settings."""
        player = await self.get(player_id)
        given = settings if isinstance(settings, PrivacySettings) else PrivacySettings.model_validate(settings)
        merged = player.privacy_settings.model_copy(update=given.model_dump(exclude_unset=True))
        updated = await self._set_columns(player_id, {"privacy_settings": merged.model_dump()}, "privacy update")
        return updated.privacy_settings

    async def delete_player(self, player_id: str) -> None:
        rows = await self._rows(
            self._table().delete().eq("id", player_id).eq("role", PLAYER_ROLE), "delete"
        )
        if not rows:
            raise RecordNotFoundError(self.resource, player_id)
        logger.info(f"Deleted player {player_id}")

    # -------------------------------------------------------------------------
    # Privacy
    # -------------------------------------------------------------------------

    async def visible_profile(
        self,
        player_id: str,
        viewer_id: Optional[str] = None,
        today: Optional[date] = None,
    ) -> Union[PlayerDetails, VisiblePlayerProfile]:
        """The player as `viewer_id` is allowed to see them."""
        viewer_id = self._require_user_id(viewer_id)
        player = await self.player_profile(player_id)
        if viewer_id in (player.id, player.coach_id):
            return player
        return limited_view(player, today)


def limited_view(player: PlayerDetails, today: Optional[date] = None) -> VisiblePlayerProfile:
    """Public card plus every field the player's privacy settings leave visible."""
    fields: Dict[str, Any] = {
        "id": player.id,
        "display_name": player.display_name,
        "photo_url": player.photo_url,
        "position": player.position,
        "jersey_number": player.jersey_number,
    }
    privacy = player.privacy_settings
    for flag, names in PRIVACY_FIELDS.items():
        if getattr(privacy, flag):
            continue
        for name in names:
            fields[name] = player.age(today) if name == "age" else getattr(player, name)
    return VisiblePlayerProfile(**fields)


def can_view_field(player: PlayerDetails, field: str, viewer_id: str) -> bool:
    """Whether `viewer_id` may see one field of the player's record."""
    if viewer_id in (player.id, player.coach_id):
        return True
    for flag, names in PRIVACY_FIELDS.items():
        if field in names:
            return not getattr(player.privacy_settings, flag)
    return field in VisiblePlayerProfile.model_fields
