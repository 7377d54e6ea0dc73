"""
Drill library service.

Pre-built drills have is_custom = false and no creator. Coaches create
custom drills, either from scratch or by duplicating a library drill.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Union

from models import Drill, DrillCategory, DrillDifficulty, DrillInput
from services.supabase_repository import SupabaseRepository, ilike_any, to_row

logger = logging.getLogger(__name__)


class DrillService(SupabaseRepository[Drill]):
    table_name = "drills"
    model = Drill
    resource = "Drill"

    async def list_drills(
        self,
        category: Optional[DrillCategory] = None,
        difficulty: Optional[DrillDifficulty] = None,
        is_custom: Optional[bool] = None,
        created_by: Optional[str] = None,
    ) -> List[Drill]:
        query = self._table().select("*")
        if category:
            query = query.eq("category", DrillCategory(category).value)
        if difficulty:
            query = query.eq("difficulty", DrillDifficulty(difficulty).value)
        if is_custom is not None:
            query = query.eq("is_custom", is_custom)
        if created_by:
            query = query.eq("created_by", created_by)
        return self._parse_many(await self._rows(query.order("title")))

    async def library(
        self,
        category: Optional[DrillCategory] = None,
        difficulty: Optional[DrillDifficulty] = None,
    ) -> List[Drill]:
        return await self.list_drills(category=category, difficulty=difficulty, is_custom=False)

    async def custom_by_coach(self, coach_id: Optional[str] = None) -> List[Drill]:
        return await self.list_drills(is_custom=True, created_by=self._require_user_id(coach_id))

    async def create(self, data: Union[DrillInput, Dict[str, Any]], coach_id: Optional[str] = None) -> Drill:
        row = to_row(data if isinstance(data, DrillInput) else DrillInput.model_validate(data))
        row["is_custom"] = True
        row["created_by"] = self._require_user_id(coach_id)
        drill = await self._insert(row)
        logger.info(f"Created custom drill {drill.id} for {drill.created_by}")
        return drill

    async def update(self, drill_id: str, updates: Union[DrillInput, Dict[str, Any]]) -> Drill:
        return await self._update(drill_id, to_row(updates, partial=True))

    async def search(
        self,
        term: str,
        category: Optional[DrillCategory] = None,
        difficulty: Optional[DrillDifficulty] = None,
    ) -> List[Drill]:
        query = self._table().select("*").or_(ilike_any(["title", "description"], term))
        if category:
            query = query.eq("category", DrillCategory(category).value)
        if difficulty:
            query = query.eq("difficulty", DrillDifficulty(difficulty).value)
        return self._parse_many(await self._rows(query.order("title"), "search"))

    async def duplicate(
        self,
        drill_id: str,
        coach_id: Optional[str] = None,
        new_title: Optional[str] = None,
    ) -> Drill:
        """Copy a drill (usually a library one) into the coach's custom drills."""
        original = await self.get(drill_id)
        row = original.model_dump(
            mode="json",
            include={
                "description",
                "category",
                "difficulty",
                "duration_minutes",
                "equipment",
                "key_points",
                "video_urls",
            },
        )
        row["title"] = new_title or f"{original.title} (Copy)"
        row["is_custom"] = True
        row["created_by"] = self._require_user_id(coach_id)
        return await self._insert(row)
