"""
Goal Service Tests
"""
from datetime import date

import pytest

from fixtures.fake_supabase import FakeSupabase
from models import GoalStatus
from services.goal_service import GoalService


@pytest.fixture
def service():
    return GoalService(FakeSupabase(), current_user_id=lambda: "coach-1")


class TestGoalService:
    @pytest.mark.asyncio
    async def test_create_starts_active_at_zero(self, service):
        goal = await service.create({"player_id": "p1", "title": "20 goals", "target_date": "2026-03-01"})
        assert goal.status is GoalStatus.ACTIVE
        assert goal.progress_percentage == 0
        assert goal.coach_id == "coach-1"
        assert goal.target_date == date(2026, 3, 1)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("value,expected", [(-5, 0), (42, 42), (250, 100)])
    async def test_progress_is_clamped(self, service, value, expected):
        goal = await service.create({"player_id": "p1", "title": "Skate faster"})
        updated = await service.update_progress(goal.id, value)
        assert updated.progress_percentage == expected

    @pytest.mark.asyncio
    async def test_full_progress_completes(self, service):
        goal = await service.create({"player_id": "p1", "title": "Skate faster"})
        updated = await service.update_progress(goal.id, 100)
        assert updated.status is GoalStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_status_lists(self, service):
        done = await service.create({"player_id": "p1", "title": "Done"})
        await service.create({"player_id": "p1", "title": "Open"})
        dropped = await service.create({"player_id": "p1", "title": "Dropped"})
        await service.complete(done.id)
        await service.cancel(dropped.id)

        assert [g.title for g in await service.active("p1")] == ["Open"]
        assert [g.title for g in await service.completed("p1")] == ["Done"]
        assert len(await service.by_player("p1")) == 3

    @pytest.mark.asyncio
    async def test_by_coach_filters_player(self, service):
        await service.create({"player_id": "p1", "title": "A"})
        await service.create({"player_id": "p2", "title": "B"})
        assert [g.title for g in await service.by_coach(player_id="p2")] == ["B"]

    @pytest.mark.asyncio
    async def test_upcoming_deadlines_window(self, service):
        today = date(2026, 3, 1)
        await service.create({"player_id": "p1", "title": "Soon", "target_date": "2026-03-10"})
        await service.create({"player_id": "p1", "title": "Later", "target_date": "2026-03-20"})
        await service.create({"player_id": "p1", "title": "Too far", "target_date": "2026-05-01"})
        await service.create({"player_id": "p1", "title": "Past", "target_date": "2026-02-01"})
        closed = await service.create({"player_id": "p1", "title": "Closed", "target_date": "2026-03-05"})
        await service.complete(closed.id)

        goals = await service.upcoming_deadlines("p1", days_ahead=30, today=today)
        assert [g.title for g in goals] == ["Soon", "Later"]
