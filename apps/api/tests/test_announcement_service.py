"""
Announcement Service Tests

Audience rules: everyone, one of the player's teams, or the player directly.
"""
import pytest

from fixtures.fake_supabase import FakeSupabase
from services.announcement_service import AnnouncementService


@pytest.fixture
def db():
    db = FakeSupabase()
    db.seed(
        "team_players",
        {"id": "tp1", "team_id": "hawks", "player_id": "p1"},
        {"id": "tp2", "team_id": "owls", "player_id": "p2"},
    )
    return db


@pytest.fixture
def coach(db):
    return AnnouncementService(db, current_user_id=lambda: "coach-1")


@pytest.fixture
def player(db):
    return AnnouncementService(db, current_user_id=lambda: "p1")


async def _publish(coach):
    everyone = await coach.create({"title": "Rink closed", "content": "No ice Friday"})
    hawks = await coach.create(
        {"title": "Hawks jerseys", "content": "Pick up", "target_audience": "team", "target_team_id": "hawks"}
    )
    owls = await coach.create(
        {"title": "Owls bus", "content": "6am", "target_audience": "team", "target_team_id": "owls"}
    )
    direct = await coach.create(
        {"title": "Great game", "content": "Nice", "target_audience": "individual",
         "target_player_id": "p1", "is_pinned": True}
    )
    other = await coach.create(
        {"title": "For p2", "content": "Hi", "target_audience": "individual", "target_player_id": "p2"}
    )
    return everyone, hawks, owls, direct, other


class TestAnnouncementService:
    @pytest.mark.asyncio
    async def test_create_sets_published_at(self, coach):
        announcement = await coach.create({"title": "Hello", "content": "World"})
        assert announcement.published_at is not None
        assert announcement.coach_id == "coach-1"

    @pytest.mark.asyncio
    async def test_player_sees_only_their_audience(self, coach, player):
        everyone, hawks, _owls, direct, _other = await _publish(coach)

        visible = await player.for_player()

        assert {a.id for a in visible} == {everyone.id, hawks.id, direct.id}
        assert visible[0].id == direct.id

    @pytest.mark.asyncio
    async def test_player_without_teams(self, db, coach):
        everyone, *_ = await _publish(coach)
        loner = AnnouncementService(db, current_user_id=lambda: "p9")
        assert [a.id for a in await loner.for_player()] == [everyone.id]

    @pytest.mark.asyncio
    async def test_by_coach_pinned_first(self, coach):
        _, _, _, direct, _ = await _publish(coach)
        announcements = await coach.by_coach()
        assert len(announcements) == 5
        assert announcements[0].id == direct.id

    @pytest.mark.asyncio
    async def test_mark_read_is_idempotent(self, db, coach, player):
        everyone, *_ = await _publish(coach)
        assert await player.unread_count() == 3

        await player.mark_read(everyone.id)
        await player.mark_read(everyone.id)

        assert len(db.rows("announcement_reads")) == 1
        assert await player.unread_count() == 2
        flags = {a.id: a.is_read for a in await player.for_player()}
        assert flags[everyone.id] is True

    @pytest.mark.asyncio
    async def test_update(self, coach):
        announcement = await coach.create({"title": "Typo", "content": "x"})
        updated = await coach.update(announcement.id, {"title": "Fixed"})
        assert updated.title == "Fixed"
