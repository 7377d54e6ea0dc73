"""
Player goals set by a coach.

Progress is a percentage in 0..100; reaching 100 completes the goal.
"""

from __future__ import annotations

from datetime import date, timedelta
from typing import Any, Dict, List, Optional, Union

from models import Goal, GoalInput, GoalStatus
from services.supabase_repository import SupabaseRepository, to_row


class GoalService(SupabaseRepository[Goal]):
    table_name = "goals"
    model = Goal
    resource = "Goal"

    async def create(self, data: Union[GoalInput, Dict[str, Any]], coach_id: Optional[str] = None) -> Goal:
        row = to_row(data if isinstance(data, GoalInput) else GoalInput.model_validate(data))
        row["coach_id"] = self._require_user_id(coach_id)
        row["status"] = GoalStatus.ACTIVE.value
        row["progress_percentage"] = 0
        return await self._insert(row)

    async def by_player(self, player_id: Optional[str] = None, status: Optional[GoalStatus] = None) -> List[Goal]:
        query = self._table().select("*").eq("player_id", self._require_user_id(player_id))
        if status:
            query = query.eq("status", GoalStatus(status).value)
        return self._parse_many(await self._rows(query.order("created_at", desc=True)))

    async def by_coach(
        self,
        coach_id: Optional[str] = None,
        player_id: Optional[str] = None,
        status: Optional[GoalStatus] = None,
    ) -> List[Goal]:
        query = self._table().select("*").eq("coach_id", self._require_user_id(coach_id))
        if player_id:
            query = query.eq("player_id", player_id)
        if status:
            query = query.eq("status", GoalStatus(status).value)
        return self._parse_many(await self._rows(query.order("created_at", desc=True)))

    async def update(self, goal_id: str, updates: Dict[str, Any]) -> Goal:
        return await self._update(goal_id, to_row(updates, partial=True))

    async def update_progress(self, goal_id: str, percentage: int) -> Goal:
        percentage = max(0, min(100, int(percentage)))
        if percentage == 100:
            return await self.complete(goal_id)
        return await self._update(goal_id, {"progress_percentage": percentage})

    async def complete(self, goal_id: str) -> Goal:
        return await self._update(
            goal_id, {"status": GoalStatus.COMPLETED.value, "progress_percentage": 100}
        )

    async def cancel(self, goal_id: str) -> Goal:
        return await self._update(goal_id, {"status": GoalStatus.CANCELLED.value})

    async def active(self, player_id: Optional[str] = None) -> List[Goal]:
        return await self.by_player(player_id, GoalStatus.ACTIVE)

    async def completed(self, player_id: Optional[str] = None) -> List[Goal]:
        return await self.by_player(player_id, GoalStatus.COMPLETED)

    async def upcoming_deadlines(
        self,
        player_id: Optional[str] = None,
        days_ahead: int = 30,
        today: Optional[date] = None,
    ) -> List[Goal]:
        """Active goals whose target date falls within the next `days_ahead` days."""
        start = today or date.today()
        end = start + timedelta(days=days_ahead)
        query = (
            self._table()
            .select("*")
            .eq("player_id", self._require_user_id(player_id))
            .eq("status", GoalStatus.ACTIVE.value)
            .gte("target_date", start.isoformat())
            .lte("target_date", end.isoformat())
            .order("target_date")
        )
        return self._parse_many(await self._rows(query))
