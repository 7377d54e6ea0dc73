"""
AI Conversation Service Tests
"""
import pytest

from fixtures.fake_supabase import FakeSupabase
from models import AIMessageRole
from services.ai_conversation_service import AIConversationService


@pytest.fixture
def service():
    return AIConversationService(FakeSupabase(), current_user_id=lambda: "p1")


class TestAIConversationService:
    @pytest.mark.asyncio
    async def test_create_for_current_player(self, service):
        conversation = await service.create("Shooting tips", context={"drill_id": "d1"})
        assert conversation.player_id == "p1"
        assert conversation.context == {"drill_id": "d1"}

    @pytest.mark.asyncio
    async def test_messages_in_order(self, service):
        conversation = await service.create("Tips")
        await service.add_message(conversation.id, "user", "How do I snap shot?")
        await service.add_message(conversation.id, AIMessageRole.ASSISTANT, "Weight transfer first.")

        full = await service.with_messages(conversation.id)

        assert [m.role for m in full.messages] == [AIMessageRole.USER, AIMessageRole.ASSISTANT]
        assert full.messages[1].content == "Weight transfer first."

    @pytest.mark.asyncio
    async def test_new_message_moves_thread_to_top(self, service):
        older = await service.create("Older")
        await service.create("Newer")
        await service.add_message(older.id, "user", "bump")

        threads = await service.by_player()
        assert threads[0].id == older.id

    @pytest.mark.asyncio
    async def test_invalid_role_rejected(self, service):
        conversation = await service.create("Tips")
        with pytest.raises(ValueError):
            await service.add_message(conversation.id, "robot", "beep")

    @pytest.mark.asyncio
    async def test_update_title(self, service):
        conversation = await service.create()
        assert (await service.update_title(conversation.id, "Renamed")).title == "Renamed"
