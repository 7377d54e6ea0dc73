"""
AI Conversation Service

Stored chat threads between a player and the assistant. Adding a message
bumps the conversation's updated_at so the newest thread sorts first.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Union

from models import AIConversation, AIMessage, AIMessageRole
from services.supabase_repository import SupabaseRepository, utc_now_iso

MESSAGES_TABLE = "ai_messages"


class AIConversationService(SupabaseRepository[AIConversation]):
    table_name = "ai_conversations"
    model = AIConversation
    resource = "Conversation"

    async def create(
        self,
        title: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        player_id: Optional[str] = None,
    ) -> AIConversation:
        return await self._insert(
            {"player_id": self._require_user_id(player_id), "title": title, "context": context}
        )

    async def by_player(self, player_id: Optional[str] = None) -> List[AIConversation]:
        query = (
            self._table()
            .select("*")
            .eq("player_id", self._require_user_id(player_id))
            .order("updated_at", desc=True)
        )
        return self._parse_many(await self._rows(query))

    async def update_title(self, conversation_id: str, title: str) -> AIConversation:
        return await self._update(conversation_id, {"title": title})

    async def add_message(
        self,
        conversation_id: str,
        role: Union[AIMessageRole, str],
        content: str,
    ) -> AIMessage:
        rows = await self._rows(
            self._table(MESSAGES_TABLE).insert(
                {"conversation_id": conversation_id, "role": AIMessageRole(role).value, "content": content}
            ),
            "add message",
        )
        message = self._parse(rows[0], AIMessage)
        await self._execute(
            self._table().update({"updated_at": utc_now_iso()}).eq("id", conversation_id), "touch"
        )
        return message

    async def messages(self, conversation_id: str) -> List[AIMessage]:
        query = self._table(MESSAGES_TABLE).select("*").eq("conversation_id", conversation_id).order("created_at")
        return self._parse_many(await self._rows(query), AIMessage)

    async def with_messages(self, conversation_id: str) -> AIConversation:
        conversation = await self.get(conversation_id)
        return conversation.model_copy(update={"messages": await self.messages(conversation_id)})
