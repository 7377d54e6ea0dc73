"""
Coach notes about players. A note is private to the coach unless
is_visible_to_player is set.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Union

from models import CoachNote, NoteInput
from services.supabase_repository import SupabaseRepository, to_row


class NoteService(SupabaseRepository[CoachNote]):
    table_name = "coach_notes"
    model = CoachNote
    resource = "Note"

    async def create(
        self,
        player_id: str,
        data: Union[NoteInput, Dict[str, Any]],
        coach_id: Optional[str] = None,
    ) -> CoachNote:
        row = to_row(data if isinstance(data, NoteInput) else NoteInput.model_validate(data))
        row["coach_id"] = self._require_user_id(coach_id)
        row["player_id"] = player_id
        return await self._insert(row)

    async def player_notes(
        self,
        player_id: str,
        coach_id: Optional[str] = None,
        note_type: Optional[str] = None,
        is_visible_to_player: Optional[bool] = None,
        tags: Optional[List[str]] = None,
        search_term: Optional[str] = None,
    ) -> List[CoachNote]:
        """Notes about a player, newest first. search_term is matched case-insensitively on content."""
        query = self._table().select("*").eq("player_id", player_id)
        if coach_id:
            query = query.eq("coach_id", coach_id)
        if note_type:
            query = query.eq("note_type", note_type)
        if is_visible_to_player is not None:
            query = query.eq("is_visible_to_player", is_visible_to_player)
        if tags:
            query = query.contains("tags", tags)

        notes = self._parse_many(await self._rows(query.order("created_at", desc=True)))
        if search_term:
            term = search_term.lower()
            notes = [n for n in notes if term in n.content.lower()]
        return notes

    async def visible_to_player(self, player_id: Optional[str] = None) -> List[CoachNote]:
        return await self.player_notes(self._require_user_id(player_id), is_visible_to_player=True)

    async def coach_notes(
        self,
        coach_id: Optional[str] = None,
        note_type: Optional[str] = None,
        player_id: Optional[str] = None,
        tags: Optional[List[str]] = None,
    ) -> List[CoachNote]:
        query = self._table().select("*").eq("coach_id", self._require_user_id(coach_id))
        if note_type:
            query = query.eq("note_type", note_type)
        if player_id:
            query = query.eq("player_id", player_id)
        if tags:
            query = query.contains("tags", tags)
        return self._parse_many(await self._rows(query.order("created_at", desc=True)))

    async def update(self, note_id: str, updates: Union[NoteInput, Dict[str, Any]]) -> CoachNote:
        return await self._update(note_id, to_row(updates, partial=True))

    async def set_visibility(self, note_id: str, is_visible: bool) -> CoachNote:
        return await self._update(note_id, {"is_visible_to_player": is_visible})

    async def coach_tags(self, coach_id: Optional[str] = None) -> List[str]:
        """Every distinct tag a coach has used, sorted."""
        rows = await self._rows(
            self._table().select("tags").eq("coach_id", self._require_user_id(coach_id))
        )
        return sorted({tag for row in rows for tag in (row.get("tags") or [])})
