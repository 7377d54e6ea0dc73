"""
Activity log: an append-only feed of what a user did, shown on dashboards.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from models import ActivityLog, ActivityLogInput
from services.supabase_repository import SupabaseRepository, to_row


def _iso(value: Union[datetime, str]) -> str:
    return value.isoformat() if isinstance(value, datetime) else value


class ActivityService(SupabaseRepository[ActivityLog]):
    table_name = "activity_logs"
    model = ActivityLog
    resource = "Activity log"

    async def log(self, data: Union[ActivityLogInput, Dict[str, Any]], user_id: Optional[str] = None) -> ActivityLog:
        payload = data if isinstance(data, ActivityLogInput) else ActivityLogInput.model_validate(data)
        row = to_row(payload)
        row["user_id"] = self._require_user_id(user_id)
        return await self._insert(row)

    async def list_logs(
        self,
        user_id: Optional[str] = None,
        action_type: Optional[str] = None,
        entity_type: Optional[str] = None,
        start: Optional[Union[datetime, str]] = None,
        end: Optional[Union[datetime, str]] = None,
        limit: Optional[int] = None,
    ) -> List[ActivityLog]:
        query = self._table().select("*").eq("user_id", self._require_user_id(user_id))
        if action_type:
            query = query.eq("action_type", action_type)
        if entity_type:
            query = query.eq("entity_type", entity_type)
        if start:
            query = query.gte("created_at", _iso(start))
        if end:
            query = query.lte("created_at", _iso(end))
        query = query.order("created_at", desc=True)
        if limit:
            query = query.limit(limit)
        return self._parse_many(await self._rows(query))

    async def recent(self, user_id: Optional[str] = None, limit: int = 20) -> List[ActivityLog]:
        return await self.list_logs(user_id, limit=limit)

    async def for_entity(self, entity_type: str, entity_id: str, user_id: Optional[str] = None) -> List[ActivityLog]:
        query = (
            self._table()
            .select("*")
            .eq("user_id", self._require_user_id(user_id))
            .eq("entity_type", entity_type)
            .eq("entity_id", entity_id)
            .order("created_at", desc=True)
        )
        return self._parse_many(await self._rows(query))

    async def delete_older_than(self, before: Union[datetime, str], user_id: Optional[str] = None) -> None:
        query = self._table().delete().eq("user_id", self._require_user_id(user_id)).lt("created_at", _iso(before))
        await self._execute(query, "cleanup")

    # Convenience loggers

    async def log_drill_completed(self, drill_id: str, drill_title: str, user_id: Optional[str] = None) -> ActivityLog:
        return await self.log(
            ActivityLogInput(
                action_type="drill_completed",
                entity_type="drill",
                entity_id=drill_id,
                description=f"Completed drill: {drill_title}",
            ),
            user_id,
        )

    async def log_session_scheduled(
        self, session_id: str, session_title: str, player_name: str, user_id: Optional[str] = None
    ) -> ActivityLog:
        return await self.log(
            ActivityLogInput(
                action_type="session_scheduled",
                entity_type="session",
                entity_id=session_id,
                description=f'Scheduled practice session "{session_title}" for {player_name}',
            ),
            user_id,
        )

    async def log_feedback_given(self, completion_id: str, player_name: str, user_id: Optional[str] = None) -> ActivityLog:
        return await self.log(
            ActivityLogInput(
                action_type="feedback_given",
                entity_type="completion",
                entity_id=completion_id,
                description=f"Provided feedback to {player_name}",
            ),
            user_id,
        )

    async def log_drill_created(self, drill_id: str, drill_title: str, user_id: Optional[str] = None) -> ActivityLog:
        return await self.log(
            ActivityLogInput(
                action_type="drill_created",
                entity_type="drill",
                entity_id=drill_id,
                description=f"Created custom drill: {drill_title}",
            ),
            user_id,
        )

    async def log_goal_created(
        self, goal_id: str, goal_title: str, player_name: str, user_id: Optional[str] = None
    ) -> ActivityLog:
        return await self.log(
            ActivityLogInput(
                action_type="goal_created",
                entity_type="goal",
                entity_id=goal_id,
                description=f'Set goal "{goal_title}" for {player_name}',
            ),
            user_id,
        )

    async def log_player_invited(
        self, invitation_id: str, player_email: str, user_id: Optional[str] = None
    ) -> ActivityLog:
        return await self.log(
            ActivityLogInput(
                action_type="player_invited",
                entity_type="invitation",
                entity_id=invitation_id,
                description=f"Invited player: {player_email}",
            ),
            user_id,
        )
