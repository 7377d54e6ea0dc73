"""
Statistics Service

Per-player stat lines in `player_statistics`: practice attendance and
ratings, game scoring, and free-form skill ratings. Coaches record them;
players read their own.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Union

from models import AttendanceStatus, PlayerStatistic, PlayerStatsAggregate, StatisticInput, StatType
from services.supabase_repository import SupabaseRepository, to_row, utc_now_iso

logger = logging.getLogger(__name__)

DateLike = Union[date, datetime, str]


def _iso(value: DateLike) -> str:
    return value.isoformat() if isinstance(value, (date, datetime)) else value


def aggregate_statistics(player_id: str, stats: List[PlayerStatistic]) -> PlayerStatsAggregate:
    """
    Roll a player's stat lines up into season totals.

    Attendance and average rating are computed over practice lines only;
    scoring totals and skill averages cover every line. Rates and averages
    are rounded to two decimals.
    """
    practices = [s for s in stats if s.stat_type is StatType.PRACTICE]
    attended = sum(1 for s in practices if s.attendance_status is AttendanceStatus.PRESENT)
    total_rating = sum(s.practice_rating or 0 for s in practices)

    skill_totals: Dict[str, List[float]] = defaultdict(list)
    for stat in stats:
        for skill, rating in stat.skill_ratings.items():
            skill_totals[skill].append(rating)

    total_goals = sum(s.goals for s in stats)
    total_assists = sum(s.assists for s in stats)
    return PlayerStatsAggregate(
        player_id=player_id,
        total_practices=len(practices),
        attendance_rate=round(attended / len(practices) * 100, 2) if practices else 0.0,
        average_rating=round(total_rating / len(practices), 2) if practices else 0.0,
        total_goals=total_goals,
        total_assists=total_assists,
        total_points=total_goals + total_assists,
        skill_averages={
            skill: round(sum(values) / len(values), 2) for skill, values in skill_totals.items()
        },
    )


class StatisticsService(SupabaseRepository[PlayerStatistic]):
    table_name = "player_statistics"
    model = PlayerStatistic
    resource = "Statistic"

    def _filtered(
        self,
        column: str,
        value: str,
        stat_type: Optional[StatType] = None,
        start: Optional[DateLike] = None,
        end: Optional[DateLike] = None,
    ):
        query = self._table().select("*").eq(column, value)
        if stat_type:
            query = query.eq("stat_type", StatType(stat_type).value)
        if start:
            query = query.gte("stat_date", _iso(start))
        if end:
            query = query.lte("stat_date", _iso(end))
        return query.order("stat_date", desc=True)

    async def create(
        self,
        player_id: str,
        data: Union[StatisticInput, Dict[str, Any]],
        coach_id: Optional[str] = None,
    ) -> PlayerStatistic:
        payload = data if isinstance(data, StatisticInput) else StatisticInput.model_validate(data)
        row = to_row(payload)
        row["player_id"] = player_id
        row["coach_id"] = self._require_user_id(coach_id)
        stat = await self._insert(row)
        logger.info(f"Recorded {stat.stat_type.value} stats {stat.id} for player {player_id}")
        return stat

    async def player_statistics(
        self,
        player_id: Optional[str] = None,
        stat_type: Optional[StatType] = None,
        start: Optional[DateLike] = None,
        end: Optional[DateLike] = None,
    ) -> List[PlayerStatistic]:
        query = self._filtered("player_id", self._require_user_id(player_id), stat_type, start, end)
        return self._parse_many(await self._rows(query))

    async def coach_statistics(
        self,
        coach_id: Optional[str] = None,
        player_id: Optional[str] = None,
        stat_type: Optional[StatType] = None,
        start: Optional[DateLike] = None,
        end: Optional[DateLike] = None,
    ) -> List[PlayerStatistic]:
        query = self._filtered("coach_id", self._require_user_id(coach_id), stat_type, start, end)
        if player_id:
            query = query.eq("player_id", player_id)
        return self._parse_many(await self._rows(query))

    async def update(self, stat_id: str, updates: Union[StatisticInput, Dict[str, Any]]) -> PlayerStatistic:
        changes = to_row(updates, partial=True)
        if not changes:
            return await self.get(stat_id)
        changes["updated_at"] = utc_now_iso()
        return await self._update(stat_id, changes)

    async def aggregate(
        self,
        player_id: Optional[str] = None,
        start: Optional[DateLike] = None,
        end: Optional[DateLike] = None,
    ) -> PlayerStatsAggregate:
        player_id = self._require_user_id(player_id)
        stats = await self.player_statistics(player_id, start=start, end=end)
        return aggregate_statistics(player_id, stats)

    async def latest_practice_rating(self, player_id: Optional[str] = None) -> Optional[float]:
        """Rating from the most recent rated practice, or None if none was rated."""
        rows = await self._rows(
            self._table()
            .select("practice_rating")
            .eq("player_id", self._require_user_id(player_id))
            .eq("stat_type", StatType.PRACTICE.value)
            .not_.is_("practice_rating", "null")
            .order("stat_date", desc=True)
            .limit(1)
        )
        return rows[0]["practice_rating"] if rows else None
