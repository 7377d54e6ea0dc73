"""
Player Service Tests

Roster management, coach linking and privacy-aware profile views.
"""
from datetime import date

import pytest

from core.exceptions import AccessDeniedError, RecordNotFoundError
from fixtures.fake_supabase import FakeSupabase
from models import PlayerDetails, VisiblePlayerProfile
from services.player_service import PlayerService, can_view_field, limited_view

TODAY = date(2026, 6, 1)


@pytest.fixture
def db():
    db = FakeSupabase()
    db.seed(
        "profiles",
        {"id": "coach-1", "email": "coach@example.com", "display_name": "Coach Kim", "role": "coach"},
        {"id": "coach-2", "email": "other@example.com", "display_name": "Coach Lee", "role": "coach"},
        {
            "id": "p1", "email": "ava@example.com", "display_name": "Ava", "role": "player",
            "coach_id": "coach-1", "position": "center", "jersey_number": 9, "skill_level": "advanced",
            "date_of_birth": "2012-07-15", "phone": "555-0101", "city": "Duluth", "state": "MN",
            "address_line1": "1 Rink Rd", "instagram_handle": "@ava9", "photo_url": "https://img/ava.png",
            "privacy_settings": {"hide_phone": True, "hide_address": True},
        },
        {
            "id": "p2", "email": "ben@example.com", "display_name": "Ben", "role": "player",
            "coach_id": "coach-1", "position": "defense", "date_of_birth": "2010-01-02",
        },
        {"id": "p3", "email": "cal@example.com", "display_name": "Cal", "role": "player", "position": "goalie"},
    )
    db.seed("teams", {"id": "t1", "coach_id": "coach-1", "name": "U14 Hawks", "season": "2026"})
    db.seed("team_players", {"team_id": "t1", "player_id": "p1"})
    return db


@pytest.fixture
def service(db):
    return PlayerService(db, current_user_id=lambda: "coach-1")


class TestLookups:
    @pytest.mark.asyncio
    async def test_players_by_coach_sorted(self, service):
        players = await service.players_by_coach()
        assert [p.display_name for p in players] == ["Ava", "Ben"]

    @pytest.mark.asyncio
    async def test_get_ignores_coach_rows(self, service):
        with pytest.raises(RecordNotFoundError):
            await service.get("coach-1")

    @pytest.mark.asyncio
    async def test_player_profile_with_teams_and_age(self, service):
        player = await service.player_profile("p1")
        assert player.jersey_number == 9
        assert player.privacy_settings.hide_phone is True
        assert player.privacy_settings.hide_email is False
        assert [t.team_name for t in player.teams] == ["U14 Hawks"]
        assert player.teams[0].season == "2026"
        assert player.age(TODAY) == 13

    @pytest.mark.asyncio
    async def test_missing_privacy_settings_default_to_visible(self, service):
        player = await service.get("p3")
        assert player.privacy_settings.hide_email is False

    @pytest.mark.asyncio
    async def test_player_coach(self, service):
        coach = await service.player_coach("p1")
        assert coach.display_name == "Coach Kim"

    @pytest.mark.asyncio
    async def test_player_without_coach(self, service):
        with pytest.raises(RecordNotFoundError):
            await service.player_coach("p3")

    @pytest.mark.asyncio
    async def test_search_players(self, service):
        assert [p.id for p in await service.search_players("example.com")] == ["p1", "p2", "p3"]
        assert [p.id for p in await service.search_players("BEN")] == ["p2"]
        assert [p.id for p in await service.search_players("a", coach_id="coach-1")] == ["p1", "p2"]
        assert await service.search_players("  ") == []

    @pytest.mark.asyncio
    async def test_search_players_never_returns_coaches(self, service):
        assert await service.search_players("Coach") == []

    @pytest.mark.asyncio
    async def test_progress_summary(self, db, service):
        db.seed("player_progress_summary", {"player_id": "p1", "completed_sessions": 4})
        summary = await service.progress_summary("p1")
        assert summary["completed_sessions"] == 4
        assert await service.progress_summary("p2") is None


class TestCoachPlayers:
    @pytest.mark.asyncio
    async def test_filters(self, service):
        async def ids(**filters):
            return [p.id for p in await service.coach_players(today=TODAY, **filters)]

        assert await ids() == ["p1", "p2"]
        assert await ids(search="defen") == ["p2"]
        assert await ids(position="center") == ["p1"]
        assert await ids(skill_level="advanced") == ["p1"]
        assert await ids(team_id="t1") == ["p1"]
        assert await ids(team_id="t-empty") == []
        assert await ids(has_photo=True) == ["p1"]
        assert await ids(has_photo=False) == ["p2"]
        assert await ids(age_min=14) == ["p2"]
        assert await ids(age_max=13) == ["p1"]
        assert await ids(age_min=13, age_max=16) == ["p1", "p2"]


class TestCoachLink:
    @pytest.mark.asyncio
    async def test_link_and_unlink(self, service):
        linked = await service.link_to_coach("p3")
        assert linked.coach_id == "coach-1"
        assert [p.id for p in await service.players_by_coach()] == ["p1", "p2", "p3"]

        unlinked = await service.unlink_from_coach("p3")
        assert unlinked.coach_id is None

    @pytest.mark.asyncio
    async def test_link_requires_coach_profile(self, db, service):
        with pytest.raises(RecordNotFoundError):
            await service.link_to_coach("p3", coach_id="p2")
        assert ("profiles", "update") not in db.calls

    @pytest.mark.asyncio
    async def test_only_current_coach_unlinks(self, service):
        with pytest.raises(AccessDeniedError):
            await service.unlink_from_coach("p1", coach_id="coach-2")

    @pytest.mark.asyncio
    async def test_link_unknown_player(self, service):
        with pytest.raises(RecordNotFoundError):
            await service.link_to_coach("coach-2")


class TestUpdates:
    @pytest.mark.asyncio
    async def test_update_player_partial(self, service):
        player = await service.update_player("p2", {"jerseyNumber": 4, "shoots": "left"})
        assert player.jersey_number == 4
        assert player.shoots == "left"
        assert player.position == "defense"

    @pytest.mark.asyncio
    async def test_update_privacy_merges(self, service):
        settings = await service.update_privacy("p1", {"hideEmail": True})
        assert settings.hide_email is True
        assert settings.hide_phone is True
        assert settings.hide_social is False

    @pytest.mark.asyncio
    async def test_delete_player(self, db, service):
        await service.delete_player("p3")
        assert "p3" not in [row["id"] for row in db.rows("profiles")]

    @pytest.mark.asyncio
    async def test_delete_refuses_coach_rows(self, service):
        with pytest.raises(RecordNotFoundError):
            await service.delete_player("coach-2")


class TestVisibility:
    @pytest.mark.asyncio
    async def test_player_and_coach_see_everything(self, service):
        own = await service.visible_profile("p1", viewer_id="p1")
        coach = await service.visible_profile("p1")
        assert isinstance(own, PlayerDetails)
        assert isinstance(coach, PlayerDetails)
        assert coach.phone == "555-0101"

    @pytest.mark.asyncio
    async def test_other_viewers_get_limited_view(self, service):
        view = await service.visible_profile("p1", viewer_id="coach-2", today=TODAY)

        assert isinstance(view, VisiblePlayerProfile)
        assert view.display_name == "Ava"
        assert view.jersey_number == 9
        assert view.email == "ava@example.com"
        assert view.instagram_handle == "@ava9"
        assert view.age == 13
        assert view.phone is None
        assert view.address_line1 is None
        assert view.city is None

    def test_hidden_age_and_social(self):
        player = PlayerDetails(
            id="p9", email="p9@example.com", display_name="Dee", date_of_birth="2011-03-03",
            twitter_handle="@dee", privacy_settings={"hide_age": True, "hide_social": True},
        )
        view = limited_view(player, TODAY)
        assert view.age is None
        assert view.date_of_birth is None
        assert view.twitter_handle is None

    def test_can_view_field(self):
        player = PlayerDetails(
            id="p9", email="p9@example.com", display_name="Dee", coach_id="coach-1",
            privacy_settings={"hide_email": True},
        )
        assert can_view_field(player, "email", "p9") is True
        assert can_view_field(player, "email", "coach-1") is True
        assert can_view_field(player, "email", "stranger") is False
        assert can_view_field(player, "phone", "stranger") is True
        assert can_view_field(player, "medical_notes", "stranger") is False
