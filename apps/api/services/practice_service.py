"""
Practice Session Service

Sessions are scheduled by a coach, optionally for one player, and carry an
ordered list of drills (`session_drills.order_index`).
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from core.exceptions import DataAccessError
from models import (
    Drill,
    PracticeSession,
    PracticeSessionInput,
    SessionDrill,
    SessionDrillInput,
    SessionStatus,
)
from services.supabase_repository import SupabaseRepository, to_row

logger = logging.getLogger(__name__)

SESSION_DRILLS_TABLE = "session_drills"

PAST_STATUSES = [SessionStatus.COMPLETED.value, SessionStatus.CANCELLED.value, SessionStatus.MISSED.value]


def _iso(value: Union[datetime, str]) -> str:
    return value.isoformat() if isinstance(value, datetime) else value


class PracticeService(SupabaseRepository[PracticeSession]):
    table_name = "practice_sessions"
    model = PracticeSession
    resource = "Practice session"

    def _filtered(
        self,
        column: str,
        value: str,
        status: Optional[SessionStatus] = None,
        start: Optional[Union[datetime, str]] = None,
        end: Optional[Union[datetime, str]] = None,
    ):
        query = self._table().select("*").eq(column, value)
        if status:
            query = query.eq("status", SessionStatus(status).value)
        if start:
            query = query.gte("scheduled_date", _iso(start))
        if end:
            query = query.lte("scheduled_date", _iso(end))
        return query.order("scheduled_date", desc=True)

    async def by_coach(
        self,
        coach_id: Optional[str] = None,
        player_id: Optional[str] = None,
        status: Optional[SessionStatus] = None,
        start: Optional[Union[datetime, str]] = None,
        end: Optional[Union[datetime, str]] = None,
    ) -> List[PracticeSession]:
        query = self._filtered("coach_id", self._require_user_id(coach_id), status, start, end)
        if player_id:
            query = query.eq("player_id", player_id)
        return self._parse_many(await self._rows(query))

    async def by_player(
        self,
        player_id: Optional[str] = None,
        status: Optional[SessionStatus] = None,
        start: Optional[Union[datetime, str]] = None,
        end: Optional[Union[datetime, str]] = None,
    ) -> List[PracticeSession]:
        query = self._filtered("player_id", self._require_user_id(player_id), status, start, end)
        return self._parse_many(await self._rows(query))

    async def create(
        self,
        data: Union[PracticeSessionInput, Dict[str, Any]],
        coach_id: Optional[str] = None,
    ) -> PracticeSession:
        payload = data if isinstance(data, PracticeSessionInput) else PracticeSessionInput.model_validate(data)
        row = to_row(payload)
        row["coach_id"] = self._require_user_id(coach_id)
        row["status"] = SessionStatus.SCHEDULED.value
        session = await self._insert(row)
        logger.info(f"Scheduled practice {session.id} for {session.scheduled_date.isoformat()}")
        return session

    async def update(self, session_id: str, updates: Dict[str, Any]) -> PracticeSession:
        return await self._update(session_id, to_row(updates, partial=True))

    async def complete(self, session_id: str, notes: Optional[str] = None) -> PracticeSession:
        changes: Dict[str, Any] = {"status": SessionStatus.COMPLETED.value}
        if notes is not None:
            changes["notes"] = notes
        return await self._update(session_id, changes)

    async def cancel(self, session_id: str, notes: Optional[str] = None) -> PracticeSession:
        changes: Dict[str, Any] = {"status": SessionStatus.CANCELLED.value}
        if notes is not None:
            changes["notes"] = notes
        return await self._update(session_id, changes)

    async def upcoming(
        self,
        player_id: Optional[str] = None,
        limit: int = 5,
        now: Optional[datetime] = None,
    ) -> List[PracticeSession]:
        now = now or datetime.now(timezone.utc)
        query = (
            self._table()
            .select("*")
            .eq("player_id", self._require_user_id(player_id))
            .eq("status", SessionStatus.SCHEDULED.value)
            .gte("scheduled_date", now.isoformat())
            .order("scheduled_date")
            .limit(limit)
        )
        return self._parse_many(await self._rows(query))

    async def past(
        self,
        player_id: Optional[str] = None,
        limit: int = 10,
        now: Optional[datetime] = None,
    ) -> List[PracticeSession]:
        now = now or datetime.now(timezone.utc)
        query = (
            self._table()
            .select("*")
            .eq("player_id", self._require_user_id(player_id))
            .in_("status", PAST_STATUSES)
            .lte("scheduled_date", now.isoformat())
            .order("scheduled_date", desc=True)
            .limit(limit)
        )
        return self._parse_many(await self._rows(query))

    # -------------------------------------------------------------------------
    # Session drills
    # -------------------------------------------------------------------------

    async def session_drills(self, session_id: str) -> List[SessionDrill]:
        """Drills in a session in order, each with its drill record attached."""
        rows = await self._rows(
            self._table(SESSION_DRILLS_TABLE).select("*").eq("session_id", session_id).order("order_index")
        )
        items = self._parse_many(rows, SessionDrill)
        drill_ids = list({item.drill_id for item in items})
        if not drill_ids:
            return items
        drill_rows = await self._rows(self._table("drills").select("*").in_("id", drill_ids))
        drills = {row["id"]: self._parse(row, Drill) for row in drill_rows}
        return [item.model_copy(update={"drill": drills.get(item.drill_id)}) for item in items]

    async def with_drills(self, session_id: str) -> Dict[str, Any]:
        session = await self.get(session_id)
        return {"session": session, "drills": await self.session_drills(session_id)}

    async def add_drill(self, data: Union[SessionDrillInput, Dict[str, Any]]) -> SessionDrill:
        payload = data if isinstance(data, SessionDrillInput) else SessionDrillInput.model_validate(data)
        rows = await self._rows(self._table(SESSION_DRILLS_TABLE).insert(to_row(payload)), "add drill")
        if not rows:
            raise DataAccessError("Adding drill to session returned no row")
        return self._parse(rows[0], SessionDrill)

    async def remove_drill(self, session_drill_id: str) -> None:
        await self._execute(
            self._table(SESSION_DRILLS_TABLE).delete().eq("id", session_drill_id), "remove drill"
        )

    async def reorder_drill(self, session_drill_id: str, order_index: int) -> SessionDrill:
        row = await self._first(
            self._table(SESSION_DRILLS_TABLE).update({"order_index": order_index}).eq("id", session_drill_id),
            session_drill_id,
            "reorder",
        )
        return self._parse(row, SessionDrill)
