"""
Team Service

Teams belong to a coach; `team_players` links players to teams.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, Dict, Iterable, List, Optional, Union

from core.exceptions import DataAccessError
from models import PlayerProfile, Team, TeamInput, TeamPlayer
from services.supabase_repository import SupabaseRepository, to_row

logger = logging.getLogger(__name__)

TEAM_PLAYERS_TABLE = "team_players"


class TeamService(SupabaseRepository[Team]):
    table_name = "teams"
    model = Team
    resource = "Team"

    async def create(self, data: Union[TeamInput, Dict[str, Any]], coach_id: Optional[str] = None) -> Team:
        row = to_row(data if isinstance(data, TeamInput) else TeamInput.model_validate(data))
        row["coach_id"] = self._require_user_id(coach_id)
        team = await self._insert(row)
        logger.info(f"Created team {team.id} for coach {team.coach_id}")
        return team

    async def coach_teams(self, coach_id: Optional[str] = None) -> List[Team]:
        """Teams for a coach, newest first, with their memberships attached."""
        coach_id = self._require_user_id(coach_id)
        rows = await self._rows(
            self._table().select("*").eq("coach_id", coach_id).order("created_at", desc=True)
        )
        teams = self._parse_many(rows)
        if not teams:
            return teams

        memberships = await self._memberships(team_ids=[t.id for t in teams])
        by_team: Dict[str, List[TeamPlayer]] = defaultdict(list)
        for membership in memberships:
            by_team[membership.team_id].append(membership)
        return [team.model_copy(update={"players": by_team.get(team.id, [])}) for team in teams]

    async def get_with_roster(self, team_id: str) -> Team:
        """Team plus each member's player profile."""
        team = await self.get(team_id)
        memberships = await self._memberships(team_ids=[team_id])

        player_ids = [m.player_id for m in memberships]
        profiles: Dict[str, PlayerProfile] = {}
        if player_ids:
            rows = await self._rows(self._table("profiles").select("*").in_("id", player_ids))
            profiles = {row["id"]: self._parse(row, PlayerProfile) for row in rows}

        roster = [m.model_copy(update={"player": profiles.get(m.player_id)}) for m in memberships]
        return team.model_copy(update={"players": roster})

    async def update(self, team_id: str, updates: Union[TeamInput, Dict[str, Any]]) -> Team:
        return await self._update(team_id, to_row(updates, partial=True))

    async def add_player(self, team_id: str, player_id: str) -> TeamPlayer:
        players = await self.add_players(team_id, [player_id])
        return players[0]

    async def add_players(self, team_id: str, player_ids: Iterable[str]) -> List[TeamPlayer]:
        inserts = [{"team_id": team_id, "player_id": pid} for pid in player_ids]
        if not inserts:
            return []
        rows = await self._rows(self._table(TEAM_PLAYERS_TABLE).insert(inserts), "add players")
        if not rows:
            raise DataAccessError("Adding players returned no rows")
        logger.info(f"Added {len(rows)} player(s) to team {team_id}")
        return self._parse_many(rows, TeamPlayer)

    async def remove_player(self, team_player_id: str) -> None:
        await self._execute(
            self._table(TEAM_PLAYERS_TABLE).delete().eq("id", team_player_id), "remove player"
        )

    async def player_teams(self, player_id: Optional[str] = None) -> List[Team]:
        player_id = self._require_user_id(player_id)
        memberships = await self._memberships(player_id=player_id)
        team_ids = [m.team_id for m in memberships if m.team_id]
        if not team_ids:
            return []
        rows = await self._rows(self._table().select("*").in_("id", team_ids).order("name"))
        return self._parse_many(rows)

    async def player_team_ids(self, player_id: str) -> List[str]:
        return [m.team_id for m in await self._memberships(player_id=player_id) if m.team_id]

    async def _memberships(
        self,
        team_ids: Optional[List[str]] = None,
        player_id: Optional[str] = None,
    ) -> List[TeamPlayer]:
        query = self._table(TEAM_PLAYERS_TABLE).select("*")
        if team_ids is not None:
            query = query.in_("team_id", team_ids)
        if player_id is not None:
            query = query.eq("player_id", player_id)
        return self._parse_many(await self._rows(query, "roster lookup"), TeamPlayer)
