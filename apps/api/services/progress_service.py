"""
Progress Tracking Service

Drill completions logged by players (with optional coach feedback) and
numeric performance metrics used for trend charts.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from models import DrillCompletion, DrillCompletionInput, PerformanceMetric, PerformanceMetricInput
from services.supabase_repository import SupabaseRepository, to_row, utc_now_iso

logger = logging.getLogger(__name__)

METRICS_TABLE = "performance_metrics"


def _iso(value: Union[datetime, str]) -> str:
    return value.isoformat() if isinstance(value, datetime) else value


class ProgressService(SupabaseRepository[DrillCompletion]):
    table_name = "drill_completions"
    model = DrillCompletion
    resource = "Drill completion"

    # -------------------------------------------------------------------------
    # Completions
    # -------------------------------------------------------------------------

    async def create_completion(
        self,
        data: Union[DrillCompletionInput, Dict[str, Any]],
        player_id: Optional[str] = None,
    ) -> DrillCompletion:
        payload = data if isinstance(data, DrillCompletionInput) else DrillCompletionInput.model_validate(data)
        row = to_row(payload)
        row["player_id"] = self._require_user_id(player_id)
        row["completed_at"] = utc_now_iso()
        completion = await self._insert(row)
        logger.info(f"Player {completion.player_id} completed drill {completion.drill_id}")
        return completion

    async def completions_by_player(
        self,
        player_id: Optional[str] = None,
        drill_id: Optional[str] = None,
        session_id: Optional[str] = None,
        start: Optional[Union[datetime, str]] = None,
        end: Optional[Union[datetime, str]] = None,
        limit: Optional[int] = None,
    ) -> List[DrillCompletion]:
        query = self._table().select("*").eq("player_id", self._require_user_id(player_id))
        if drill_id:
            query = query.eq("drill_id", drill_id)
        if session_id:
            query = query.eq("session_id", session_id)
        if start:
            query = query.gte("completed_at", _iso(start))
        if end:
            query = query.lte("completed_at", _iso(end))
        query = query.order("completed_at", desc=True)
        if limit:
            query = query.limit(limit)
        return self._parse_many(await self._rows(query))

    async def recent_completions(self, player_id: Optional[str] = None, limit: int = 10) -> List[DrillCompletion]:
        return await self.completions_by_player(player_id, limit=limit)

    async def completions_by_drill(self, drill_id: str, player_id: Optional[str] = None) -> List[DrillCompletion]:
        query = self._table().select("*").eq("drill_id", drill_id)
        if player_id:
            query = query.eq("player_id", player_id)
        return self._parse_many(await self._rows(query.order("completed_at", desc=True)))

    async def update_completion(self, completion_id: str, updates: Dict[str, Any]) -> DrillCompletion:
        return await self._update(completion_id, to_row(updates, partial=True))

    async def add_coach_feedback(self, completion_id: str, feedback: str) -> DrillCompletion:
        return await self._update(completion_id, {"coach_feedback": feedback})

    # -------------------------------------------------------------------------
    # Performance metrics
    # -------------------------------------------------------------------------

    async def create_metric(
        self,
        data: Union[PerformanceMetricInput, Dict[str, Any]],
        player_id: Optional[str] = None,
    ) -> PerformanceMetric:
        payload = data if isinstance(data, PerformanceMetricInput) else PerformanceMetricInput.model_validate(data)
        row = to_row(payload)
        row["player_id"] = self._require_user_id(player_id)
        row["recorded_at"] = utc_now_iso()
        rows = await self._rows(self._table(METRICS_TABLE).insert(row), "metric create")
        return self._parse(rows[0], PerformanceMetric)

    async def metrics_by_player(
        self,
        player_id: Optional[str] = None,
        metric_type: Optional[str] = None,
        start: Optional[Union[datetime, str]] = None,
        end: Optional[Union[datetime, str]] = None,
    ) -> List[PerformanceMetric]:
        query = self._table(METRICS_TABLE).select("*").eq("player_id", self._require_user_id(player_id))
        if metric_type:
            query = query.eq("metric_type", metric_type)
        if start:
            query = query.gte("recorded_at", _iso(start))
        if end:
            query = query.lte("recorded_at", _iso(end))
        rows = await self._rows(query.order("recorded_at", desc=True))
        return self._parse_many(rows, PerformanceMetric)

    async def metric_trend(self, player_id: str, metric_type: str, limit: int = 20) -> List[PerformanceMetric]:
        """Oldest-first series of one metric, for charting."""
        query = (
            self._table(METRICS_TABLE)
            .select("*")
            .eq("player_id", player_id)
            .eq("metric_type", metric_type)
            .order("recorded_at")
            .limit(limit)
        )
        return self._parse_many(await self._rows(query), PerformanceMetric)

    async def delete_metric(self, metric_id: str) -> None:
        await self._execute(self._table(METRICS_TABLE).delete().eq("id", metric_id), "metric delete")
