"""
Team Service Tests
"""
import pytest

from fixtures.fake_supabase import FakeSupabase
from services.team_service import TeamService


@pytest.fixture
def db():
    db = FakeSupabase()
    db.seed(
        "profiles",
        {"id": "p1", "email": "p1@example.com", "display_name": "Ava", "role": "player", "position": "center"},
        {"id": "p2", "email": "p2@example.com", "display_name": "Ben", "role": "player"},
    )
    return db


@pytest.fixture
def service(db):
    return TeamService(db, current_user_id=lambda: "coach-1")


class TestTeamService:
    @pytest.mark.asyncio
    async def test_create_stamps_coach(self, service):
        team = await service.create({"name": "U12 Hawks", "season": "2026"})
        assert team.coach_id == "coach-1"
        assert team.player_count == 0

    @pytest.mark.asyncio
    async def test_coach_teams_include_memberships_newest_first(self, service):
        first = await service.create({"name": "A Team"})
        second = await service.create({"name": "B Team"})
        await service.add_players(first.id, ["p1", "p2"])

        teams = await service.coach_teams()

        assert [t.id for t in teams] == [second.id, first.id]
        assert teams[1].player_count == 2
        assert teams[0].players == []

    @pytest.mark.asyncio
    async def test_coach_teams_empty(self, service):
        assert await service.coach_teams("coach-2") == []

    @pytest.mark.asyncio
    async def test_roster_attaches_player_profiles(self, service):
        team = await service.create({"name": "Hawks"})
        await service.add_player(team.id, "p1")

        roster = await service.get_with_roster(team.id)

        assert len(roster.players) == 1
        assert roster.players[0].player.display_name == "Ava"
        assert roster.players[0].player.position == "center"

    @pytest.mark.asyncio
    async def test_add_players_with_no_ids(self, service):
        assert await service.add_players("t1", []) == []

    @pytest.mark.asyncio
    async def test_remove_player(self, db, service):
        team = await service.create({"name": "Hawks"})
        membership = await service.add_player(team.id, "p1")
        await service.remove_player(membership.id)
        assert db.rows("team_players") == []

    @pytest.mark.asyncio
    async def test_player_teams(self, service):
        hawks = await service.create({"name": "Hawks"})
        owls = await service.create({"name": "Owls"})
        await service.create({"name": "Bears"})
        await service.add_player(owls.id, "p2")
        await service.add_player(hawks.id, "p2")

        teams = await service.player_teams("p2")

        assert [t.name for t in teams] == ["Hawks", "Owls"]
        assert sorted(await service.player_team_ids("p2")) == sorted([hawks.id, owls.id])
        assert await service.player_teams("p1") == []

    @pytest.mark.asyncio
    async def test_update(self, service):
        team = await service.create({"name": "Hawks"})
        updated = await service.update(team.id, {"description": "Spring league"})
        assert updated.description == "Spring league"
        assert updated.name == "Hawks"
