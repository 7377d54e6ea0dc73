"""
Announcements from a coach to all players, one team, or one player, with
per-player read receipts in `announcement_reads`.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Union

from models import Announcement, AnnouncementAudience, AnnouncementInput, AnnouncementRead
from services.supabase_repository import SupabaseRepository, to_row, utc_now_iso

logger = logging.getLogger(__name__)

READS_TABLE = "announcement_reads"


class AnnouncementService(SupabaseRepository[Announcement]):
    table_name = "announcements"
    model = Announcement
    resource = "Announcement"

    async def create(
        self,
        data: Union[AnnouncementInput, Dict[str, Any]],
        coach_id: Optional[str] = None,
    ) -> Announcement:
        payload = data if isinstance(data, AnnouncementInput) else AnnouncementInput.model_validate(data)
        row = to_row(payload)
        row["coach_id"] = self._require_user_id(coach_id)
        row["published_at"] = utc_now_iso()
        announcement = await self._insert(row)
        logger.info(
            f"Published announcement {announcement.id}",
            extra={"extra_fields": {"audience": announcement.target_audience.value}},
        )
        return announcement

    async def by_coach(self, coach_id: Optional[str] = None) -> List[Announcement]:
        """Pinned first, then newest."""
        query = (
            self._table()
            .select("*")
            .eq("coach_id", self._require_user_id(coach_id))
            .order("is_pinned", desc=True)
            .order("published_at", desc=True)
        )
        return self._parse_many(await self._rows(query))

    async def _player_audience_filter(self, player_id: str) -> str:
        team_rows = await self._rows(
            self._table("team_players").select("team_id").eq("player_id", player_id), "team lookup"
        )
        clauses = [
            f"target_audience.eq.{AnnouncementAudience.ALL.value}",
            f"target_player_id.eq.{player_id}",
        ]
        team_ids = sorted({row["team_id"] for row in team_rows if row.get("team_id")})
        if team_ids:
            clauses.append(f"target_team_id.in.({','.join(team_ids)})")
        return ",".join(clauses)

    async def for_player(self, player_id: Optional[str] = None) -> List[Announcement]:
        """Announcements addressed to everyone, to one of the player's teams, or to the player, with is_read set."""
        player_id = self._require_user_id(player_id)
        query = (
            self._table()
            .select("*")
            .or_(await self._player_audience_filter(player_id))
            .order("is_pinned", desc=True)
            .order("published_at", desc=True)
        )
        announcements = self._parse_many(await self._rows(query))
        read_ids = await self._read_ids(player_id)
        return [a.model_copy(update={"is_read": a.id in read_ids}) for a in announcements]

    async def update(self, announcement_id: str, updates: Dict[str, Any]) -> Announcement:
        return await self._update(announcement_id, to_row(updates, partial=True))

    async def mark_read(self, announcement_id: str, player_id: Optional[str] = None) -> AnnouncementRead:
        """Idempotent: marking twice keeps a single receipt."""
        row = {
            "announcement_id": announcement_id,
            "player_id": self._require_user_id(player_id),
            "read_at": utc_now_iso(),
        }
        rows = await self._rows(
            self._table(READS_TABLE).upsert(row, on_conflict="announcement_id,player_id"), "mark read"
        )
        return self._parse(rows[0], AnnouncementRead)

    async def unread_count(self, player_id: Optional[str] = None) -> int:
        player_id = self._require_user_id(player_id)
        rows = await self._rows(
            self._table().select("id").or_(await self._player_audience_filter(player_id))
        )
        read_ids = await self._read_ids(player_id)
        return sum(1 for row in rows if row["id"] not in read_ids)

    async def _read_ids(self, player_id: str) -> set:
        rows = await self._rows(
            self._table(READS_TABLE).select("announcement_id").eq("player_id", player_id), "read lookup"
        )
        return {row["announcement_id"] for row in rows}
