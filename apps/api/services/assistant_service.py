"""
AI Assistant Proxy

Forwards a chat transcript to the Anthropic Messages API on behalf of a
signed-in user.

Flow for each call:
1. No ANTHROPIC_API_KEY -> a stub assistant reply (still audit-logged)
2. Per-user rate limit counted from `assistant_logs` rows inside the window.
   A failing count query does not block the request.
3. Messages API call. System messages are folded into the system prompt.
4. Audit row written to `assistant_logs`. Logging failures never fail the call.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple

import httpx
from anthropic import APIError, AsyncAnthropic
from supabase import AsyncClient, PostgrestAPIError

from core.config import settings
from core.exceptions import AssistantRateLimitedError, ModelProviderError

logger = logging.getLogger(__name__)

LOGS_TABLE = "assistant_logs"

BASE_SYSTEM_PROMPT = (
    "You are a coaching assistant inside a hockey coaching app. "
    "Help coaches plan practices, choose drills and give feedback, and help "
    "players understand their drills and goals. Be concise and practical."
)

STUB_REPLY = "No Anthropic key configured. Set ANTHROPIC_API_KEY to enable the assistant."


def build_anthropic_payload(messages: List[Dict[str, str]]) -> Tuple[str, List[Dict[str, str]]]:
    """
    Split a chat transcript into (system prompt, conversation turns).

    Consecutive turns from the same role are merged and leading assistant
    turns dropped, since the Messages API expects alternating turns that
    start with the user.
    """
    system_parts = [BASE_SYSTEM_PROMPT]
    turns: List[Dict[str, str]] = []
    for message in messages:
        role = message.get("role")
        content = (message.get("content") or "").strip()
        if not content:
            continue
        if role == "system":
            system_parts.append(content)
            continue
        if role not in ("user", "assistant"):
            role = "user"
        if not turns and role == "assistant":
            continue
        if turns and turns[-1]["role"] == role:
            turns[-1]["content"] += "\n\n" + content
        else:
            turns.append({"role": role, "content": content})
    return "\n\n".join(system_parts), turns


class AssistantService:
    def __init__(
        self,
        client: Optional[AsyncClient],
        anthropic_client: Optional[AsyncAnthropic] = None,
        model: Optional[str] = None,
    ):
        self.client = client
        if anthropic_client is None and settings.ANTHROPIC_API_KEY:
            anthropic_client = AsyncAnthropic(api_key=settings.ANTHROPIC_API_KEY)
        self.anthropic = anthropic_client
        self.model = model or settings.ANTHROPIC_MODEL

    @property
    def enabled(self) -> bool:
        return self.anthropic is not None

    async def recent_request_count(self, user_id: str, now: Optional[datetime] = None) -> Optional[int]:
        """Requests by the user inside the window, or None when the count could not be read."""
        if self.client is None:
            return None
        now = now or datetime.now(timezone.utc)
        cutoff = now - timedelta(seconds=settings.ASSISTANT_RATE_LIMIT_WINDOW_S)
        try:
            response = await (
                self.client.table(LOGS_TABLE)
                .select("id", count="exact")
                .gte("created_at", cutoff.isoformat())
                .eq("user_id", user_id)
                .execute()
            )
        except (PostgrestAPIError, httpx.HTTPError) as e:
            logger.error(f"Rate limit check failed for {user_id}: {e}")
            return None
        return response.count or 0

    async def enforce_rate_limit(self, user_id: str) -> None:
        count = await self.recent_request_count(user_id)
        if count is not None and count >= settings.ASSISTANT_RATE_LIMIT_MAX:
            logger.warning(
                f"Assistant rate limit hit for {user_id}",
                extra={"extra_fields": {"user_id": user_id, "recent_requests": count}},
            )
            raise AssistantRateLimitedError(
                settings.ASSISTANT_RATE_LIMIT_MAX, settings.ASSISTANT_RATE_LIMIT_WINDOW_S
            )

    async def audit(
        self,
        user_id: str,
        messages: List[Dict[str, str]],
        response: Dict[str, Any],
        model: Optional[str],
        ip: Optional[str],
    ) -> None:
        if self.client is None:
            return
        try:
            await self.client.table(LOGS_TABLE).insert(
                {
                    "user_id": user_id,
                    "input": messages,
                    "response": response,
                    "model": model,
                    "ip": ip,
                }
            ).execute()
        except (PostgrestAPIError, httpx.HTTPError) as e:
            logger.error(f"Failed to write assistant log for {user_id}: {e}")

    async def chat(
        self,
        user_id: str,
        messages: List[Dict[str, str]],
        ip: Optional[str] = None,
    ) -> Dict[str, str]:
        """Return the assistant's reply as {"role": "assistant", "content": ...}."""
        if not self.enabled:
            reply = {"id": "stub-1", "role": "assistant", "content": STUB_REPLY}
            logger.info(f"Assistant stub reply for {user_id}: no API key configured")
            await self.audit(user_id, messages, {"stub": True, "message": reply}, None, ip)
            return reply

        await self.enforce_rate_limit(user_id)

        system_prompt, turns = build_anthropic_payload(messages)
        try:
            response = await self.anthropic.messages.create(
                model=self.model,
                system=system_prompt,
                messages=turns,
                max_tokens=settings.ASSISTANT_MAX_TOKENS,
                temperature=settings.ASSISTANT_TEMPERATURE,
            )
        except APIError as e:
            logger.error(f"Anthropic error for {user_id}: {e}")
            raise ModelProviderError(str(e)) from e

        completion = "".join(block.text for block in response.content if hasattr(block, "text"))
        usage = getattr(response, "usage", None)
        logger.info(
            f"Assistant reply for {user_id}",
            extra={
                "extra_fields": {
                    "user_id": user_id,
                    "model": self.model,
                    "input_tokens": getattr(usage, "input_tokens", None),
                    "output_tokens": getattr(usage, "output_tokens", None),
                }
            },
        )
        await self.audit(user_id, messages, {"model": self.model, "completion": completion}, self.model, ip)
        return {"role": "assistant", "content": completion}
