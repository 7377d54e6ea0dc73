"""
Coach Note Service Tests
"""
import pytest

from fixtures.fake_supabase import FakeSupabase
from services.note_service import NoteService


@pytest.fixture
def service():
    return NoteService(FakeSupabase(), current_user_id=lambda: "coach-1")


class TestNoteService:
    @pytest.mark.asyncio
    async def test_create_is_private_by_default(self, service):
        note = await service.create("p1", {"content": "Work on backhand", "tags": ["shooting"]})
        assert note.coach_id == "coach-1"
        assert note.player_id == "p1"
        assert note.is_visible_to_player is False

    @pytest.mark.asyncio
    async def test_player_notes_filters(self, service):
        await service.create("p1", {"content": "Great hustle", "note_type": "praise", "tags": ["effort"]})
        await service.create("p1", {"content": "Backhand needs work", "tags": ["shooting", "effort"]})
        await service.create("p2", {"content": "Other player"})

        assert len(await service.player_notes("p1")) == 2
        assert [n.note_type for n in await service.player_notes("p1", note_type="praise")] == ["praise"]
        assert len(await service.player_notes("p1", tags=["shooting", "effort"])) == 1
        assert [n.content for n in await service.player_notes("p1", search_term="BACKHAND")] == [
            "Backhand needs work"
        ]

    @pytest.mark.asyncio
    async def test_player_notes_newest_first(self, service):
        await service.create("p1", {"content": "first"})
        await service.create("p1", {"content": "second"})
        assert [n.content for n in await service.player_notes("p1")] == ["second", "first"]

    @pytest.mark.asyncio
    async def test_visible_to_player(self, service):
        note = await service.create("p1", {"content": "Shared"})
        await service.create("p1", {"content": "Private"})
        await service.set_visibility(note.id, True)

        visible = await service.visible_to_player("p1")
        assert [n.content for n in visible] == ["Shared"]

    @pytest.mark.asyncio
    async def test_coach_notes_scoped_to_coach(self, service):
        await service.create("p1", {"content": "Mine"})
        await service.create("p1", {"content": "Theirs"}, coach_id="coach-2")
        assert [n.content for n in await service.coach_notes()] == ["Mine"]

    @pytest.mark.asyncio
    async def test_coach_tags_distinct_sorted(self, service):
        await service.create("p1", {"content": "a", "tags": ["speed", "effort"]})
        await service.create("p2", {"content": "b", "tags": ["effort", "agility"]})
        assert await service.coach_tags() == ["agility", "effort", "speed"]

    @pytest.mark.asyncio
    async def test_update(self, service):
        note = await service.create("p1", {"content": "draft"})
        updated = await service.update(note.id, {"content": "final"})
        assert updated.content == "final"
