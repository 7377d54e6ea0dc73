"""
Practice Plan Service

Reusable practice plans built by coaches. A plan holds ordered sections
(`practice_plan_sections`), each holding ordered drill slots
(`practice_plan_drills`) that point at a library drill, carry custom text,
or both. Plans can be filed under categories, shared with other coaches and
marked as favourites.

A coach sees their own plans, public plans and plans shared with them. Only
the owner may share a plan.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, Dict, List, Optional, Union

from core.exceptions import AccessDeniedError, DataAccessError
from models import (
    Drill,
    PlanPermission,
    PracticePlan,
    PracticePlanCategory,
    PracticePlanCategoryInput,
    PracticePlanDrill,
    PracticePlanDrillInput,
    PracticePlanInput,
    PracticePlanSection,
    PracticePlanSectionInput,
    PracticePlanShare,
)
from services.supabase_repository import SupabaseRepository, ilike_any, to_row, utc_now_iso

logger = logging.getLogger(__name__)

SECTIONS_TABLE = "practice_plan_sections"
PLAN_DRILLS_TABLE = "practice_plan_drills"
CATEGORIES_TABLE = "practice_plan_categories"
SHARES_TABLE = "practice_plan_shares"
FAVORITES_TABLE = "practice_plan_favorites"

INCREMENT_USAGE_FN = "increment_plan_usage"

# Columns a duplicate must not inherit from its source.
_PLAN_IDENTITY_COLUMNS = ("id", "created_at", "updated_at", "times_used", "last_used_at")
_CHILD_IDENTITY_COLUMNS = ("id", "created_at", "updated_at")


def _copyable(row: Dict[str, Any], skip=_CHILD_IDENTITY_COLUMNS) -> Dict[str, Any]:
    return {key: value for key, value in row.items() if key not in skip}


class PracticePlanService(SupabaseRepository[PracticePlan]):
    table_name = "practice_plans"
    model = PracticePlan
    resource = "Practice plan"

    # -------------------------------------------------------------------------
    # Plans
    # -------------------------------------------------------------------------

    async def _shared_plan_ids(self, coach_id: str) -> List[str]:
        rows = await self._rows(
            self._table(SHARES_TABLE).select("plan_id").eq("shared_with_coach_id", coach_id),
            "share lookup",
        )
        return sorted({row["plan_id"] for row in rows})

    async def plans(
        self,
        coach_id: Optional[str] = None,
        category_id: Optional[str] = None,
        age_group: Optional[str] = None,
        skill_level: Optional[str] = None,
        is_public: Optional[bool] = None,
        folder_path: Optional[str] = None,
        search: Optional[str] = None,
        tags: Optional[List[str]] = None,
    ) -> List[PracticePlan]:
        """Plans visible to the coach, most recently edited first."""
        coach_id = self._require_user_id(coach_id)
        clauses = [f"coach_id.eq.{coach_id}", "is_public.eq.true"]
        shared = await self._shared_plan_ids(coach_id)
        if shared:
            clauses.append(f"id.in.({','.join(shared)})")

        query = self._table().select("*").or_(",".join(clauses))
        if category_id:
            query = query.eq("category_id", category_id)
        if age_group:
            query = query.eq("age_group", age_group)
        if skill_level:
            query = query.eq("skill_level", skill_level)
        if is_public is not None:
            query = query.eq("is_public", is_public)
        if folder_path:
            query = query.eq("folder_path", folder_path)
        if tags:
            query = query.contains("tags", tags)
        if search and search.strip():
            query = query.or_(ilike_any(["title", "description"], search.strip()))
        return self._parse_many(await self._rows(query.order("updated_at", desc=True)))

    async def with_details(self, plan_id: str) -> PracticePlan:
        """Plan with its category and sections, each section with its drills in order."""
        plan = await self.get(plan_id)

        category = None
        if plan.category_id:
            rows = await self._rows(
                self._table(CATEGORIES_TABLE).select("*").eq("id", plan.category_id).limit(1),
                "category lookup",
            )
            category = self._parse(rows[0], PracticePlanCategory) if rows else None

        sections = await self.sections(plan_id)
        return plan.model_copy(update={"category": category, "sections": sections})

    async def create(
        self,
        data: Union[PracticePlanInput, Dict[str, Any]],
        coach_id: Optional[str] = None,
    ) -> PracticePlan:
        payload = data if isinstance(data, PracticePlanInput) else PracticePlanInput.model_validate(data)
        row = to_row(payload)
        row["coach_id"] = self._require_user_id(coach_id)
        row["times_used"] = 0
        plan = await self._insert(row)
        logger.info(f"Created practice plan {plan.id} for coach {plan.coach_id}")
        return plan

    async def update(self, plan_id: str, updates: Union[PracticePlanInput, Dict[str, Any]]) -> PracticePlan:
        changes = to_row(updates, partial=True)
        if not changes:
            return await self.get(plan_id)
        changes["updated_at"] = utc_now_iso()
        return await self._update(plan_id, changes)

    async def duplicate(
        self,
        plan_id: str,
        new_title: Optional[str] = None,
        coach_id: Optional[str] = None,
    ) -> PracticePlan:
        """Private copy of a plan with all its sections and drills, owned by the caller."""
        coach_id = self._require_user_id(coach_id)
        source = await self._first(self._table().select("*").eq("id", plan_id).limit(1), plan_id)

        row = _copyable(source, _PLAN_IDENTITY_COLUMNS)
        row.update(
            {
                "title": new_title or f"{source['title']} (Copy)",
                "coach_id": coach_id,
                "is_public": False,
                "times_used": 0,
            }
        )
        copy = await self._insert(row)

        section_rows = await self._rows(
            self._table(SECTIONS_TABLE).select("*").eq("plan_id", plan_id).order("order_index"),
            "section lookup",
        )
        for section_row in section_rows:
            new_section = _copyable(section_row)
            new_section["plan_id"] = copy.id
            created = await self._rows(self._table(SECTIONS_TABLE).insert(new_section), "copy section")
            if not created:
                raise DataAccessError("Copying a plan section returned no row")

            drill_rows = await self._rows(
                self._table(PLAN_DRILLS_TABLE).select("*").eq("section_id", section_row["id"]),
                "plan drill lookup",
            )
            if drill_rows:
                copies = [dict(_copyable(d), section_id=created[0]["id"]) for d in drill_rows]
                await self._rows(self._table(PLAN_DRILLS_TABLE).insert(copies), "copy drills")

        logger.info(f"Duplicated practice plan {plan_id} as {copy.id}")
        return copy

    async def increment_times_used(self, plan_id: str) -> None:
        """Bump `times_used` and `last_used_at` atomically in the database."""
        await self._execute(self.client.rpc(INCREMENT_USAGE_FN, {"plan_id": plan_id}), "usage update")

    # -------------------------------------------------------------------------
    # Sections
    # -------------------------------------------------------------------------

    async def sections(self, plan_id: str) -> List[PracticePlanSection]:
        rows = await self._rows(
            self._table(SECTIONS_TABLE).select("*").eq("plan_id", plan_id).order("order_index"),
            "section lookup",
        )
        sections = self._parse_many(rows, PracticePlanSection)
        if not sections:
            return sections

        drill_rows = await self._rows(
            self._table(PLAN_DRILLS_TABLE)
            .select("*")
            .in_("section_id", [s.id for s in sections])
            .order("order_index"),
            "plan drill lookup",
        )
        items = self._parse_many(drill_rows, PracticePlanDrill)

        drill_ids = sorted({item.drill_id for item in items if item.drill_id})
        library: Dict[str, Drill] = {}
        if drill_ids:
            rows = await self._rows(self._table("drills").select("*").in_("id", drill_ids))
            library = {row["id"]: self._parse(row, Drill) for row in rows}

        by_section: Dict[str, List[PracticePlanDrill]] = defaultdict(list)
        for item in items:
            by_section[item.section_id].append(
                item.model_copy(update={"drill": library.get(item.drill_id)}) if item.drill_id else item
            )
        return [s.model_copy(update={"drills": by_section.get(s.id, [])}) for s in sections]

    async def create_section(
        self,
        plan_id: str,
        data: Union[PracticePlanSectionInput, Dict[str, Any]],
    ) -> PracticePlanSection:
        payload = (
            data if isinstance(data, PracticePlanSectionInput)
            else PracticePlanSectionInput.model_validate(data)
        )
        row = to_row(payload)
        row["plan_id"] = plan_id
        rows = await self._rows(self._table(SECTIONS_TABLE).insert(row), "create section")
        if not rows:
            raise DataAccessError("Creating plan section returned no row")
        return self._parse(rows[0], PracticePlanSection)

    async def update_section(self, section_id: str, updates: Dict[str, Any]) -> PracticePlanSection:
        changes = to_row(updates, partial=True)
        changes["updated_at"] = utc_now_iso()
        row = await self._first(
            self._table(SECTIONS_TABLE).update(changes).eq("id", section_id), section_id, "update section"
        )
        return self._parse(row, PracticePlanSection)

    async def delete_section(self, section_id: str) -> None:
        await self._execute(
            self._table(PLAN_DRILLS_TABLE).delete().eq("section_id", section_id), "delete section drills"
        )
        await self._execute(self._table(SECTIONS_TABLE).delete().eq("id", section_id), "delete section")

    # -------------------------------------------------------------------------
    # Plan drills
    # -------------------------------------------------------------------------

    async def add_drill(
        self,
        section_id: str,
        data: Union[PracticePlanDrillInput, Dict[str, Any]],
    ) -> PracticePlanDrill:
        payload = (
            data if isinstance(data, PracticePlanDrillInput)
            else PracticePlanDrillInput.model_validate(data)
        )
        if not payload.drill_id and not payload.custom_title:
            raise ValueError("A plan drill needs a library drill or a custom title")
        row = to_row(payload)
        row["section_id"] = section_id
        rows = await self._rows(self._table(PLAN_DRILLS_TABLE).insert(row), "add drill")
        if not rows:
            raise DataAccessError("Adding drill to plan returned no row")
        return self._parse(rows[0], PracticePlanDrill)

    async def update_drill(self, plan_drill_id: str, updates: Dict[str, Any]) -> PracticePlanDrill:
        changes = to_row(updates, partial=True)
        changes["updated_at"] = utc_now_iso()
        row = await self._first(
            self._table(PLAN_DRILLS_TABLE).update(changes).eq("id", plan_drill_id), plan_drill_id, "update drill"
        )
        return self._parse(row, PracticePlanDrill)

    async def remove_drill(self, plan_drill_id: str) -> None:
        await self._execute(self._table(PLAN_DRILLS_TABLE).delete().eq("id", plan_drill_id), "remove drill")

    # -------------------------------------------------------------------------
    # Categories
    # -------------------------------------------------------------------------

    async def categories(self, coach_id: Optional[str] = None) -> List[PracticePlanCategory]:
        """The coach's own categories plus the built-in ones, by name."""
        coach_id = self._require_user_id(coach_id)
        rows = await self._rows(
            self._table(CATEGORIES_TABLE)
            .select("*")
            .or_(f"coach_id.eq.{coach_id},is_system.eq.true")
            .order("name"),
            "category lookup",
        )
        return self._parse_many(rows, PracticePlanCategory)

    async def create_category(
        self,
        data: Union[PracticePlanCategoryInput, Dict[str, Any]],
        coach_id: Optional[str] = None,
    ) -> PracticePlanCategory:
        payload = (
            data if isinstance(data, PracticePlanCategoryInput)
            else PracticePlanCategoryInput.model_validate(data)
        )
        row = to_row(payload)
        row["coach_id"] = self._require_user_id(coach_id)
        row["is_system"] = False
        rows = await self._rows(self._table(CATEGORIES_TABLE).insert(row), "create category")
        if not rows:
            raise DataAccessError("Creating plan category returned no row")
        return self._parse(rows[0], PracticePlanCategory)

    # -------------------------------------------------------------------------
    # Sharing
    # -------------------------------------------------------------------------

    async def share(
        self,
        plan_id: str,
        shared_with_coach_id: str,
        permission: Union[PlanPermission, str] = PlanPermission.VIEW,
        coach_id: Optional[str] = None,
    ) -> PracticePlanShare:
        coach_id = self._require_user_id(coach_id)
        plan = await self.get(plan_id)
        if plan.coach_id != coach_id:
            raise AccessDeniedError(f"Only the owner can share plan {plan_id}")
        if shared_with_coach_id == coach_id:
            raise ValueError("A plan cannot be shared with its owner")

        now = utc_now_iso()
        rows = await self._rows(
            self._table(SHARES_TABLE).upsert(
                {
                    "plan_id": plan_id,
                    "shared_by_coach_id": coach_id,
                    "shared_with_coach_id": shared_with_coach_id,
                    "permission": PlanPermission(permission).value,
                    "shared_at": now,
                    "last_accessed_at": now,
                },
                on_conflict="plan_id,shared_with_coach_id",
            ),
            "share",
        )
        if not rows:
            raise DataAccessError("Sharing plan returned no row")
        logger.info(f"Shared practice plan {plan_id} with coach {shared_with_coach_id}")
        return self._parse(rows[0], PracticePlanShare)

    async def unshare(self, plan_id: str, shared_with_coach_id: str) -> None:
        await self._execute(
            self._table(SHARES_TABLE)
            .delete()
            .eq("plan_id", plan_id)
            .eq("shared_with_coach_id", shared_with_coach_id),
            "unshare",
        )

    async def shares(self, plan_id: str) -> List[PracticePlanShare]:
        rows = await self._rows(
            self._table(SHARES_TABLE).select("*").eq("plan_id", plan_id).order("shared_at"), "share lookup"
        )
        return self._parse_many(rows, PracticePlanShare)

    # -------------------------------------------------------------------------
    # Favourites
    # -------------------------------------------------------------------------

    async def toggle_favorite(self, plan_id: str, coach_id: Optional[str] = None) -> bool:
        """Flip the favourite mark; returns whether the plan is now a favourite."""
        coach_id = self._require_user_id(coach_id)
        existing = await self._rows(
            self._table(FAVORITES_TABLE).select("id").eq("plan_id", plan_id).eq("coach_id", coach_id).limit(1),
            "favourite lookup",
        )
        if existing:
            await self._execute(
                self._table(FAVORITES_TABLE).delete().eq("id", existing[0]["id"]), "unfavourite"
            )
            return False
        await self._execute(
            self._table(FAVORITES_TABLE).insert({"plan_id": plan_id, "coach_id": coach_id}), "favourite"
        )
        return True

    async def favorites(self, coach_id: Optional[str] = None) -> List[PracticePlan]:
        coach_id = self._require_user_id(coach_id)
        rows = await self._rows(
            self._table(FAVORITES_TABLE).select("plan_id").eq("coach_id", coach_id), "favourite lookup"
        )
        plan_ids = sorted({row["plan_id"] for row in rows})
        if not plan_ids:
            return []
        plans = await self._rows(self._table().select("*").in_("id", plan_ids).order("updated_at", desc=True))
        return self._parse_many(plans)
