"""
AI Assistant API Endpoints

POST /api/assistant/chat proxies a transcript to the language model for the
signed-in user.
"""

from fastapi import APIRouter, Depends, Request
from supabase import AsyncClient

from core.auth import get_current_user
from core.exceptions import ValidationError
from core.supabase import get_supabase
from models import AuthenticatedUser
from schemas import AssistantReply, ChatRequest, ChatResponse
from services.assistant_service import AssistantService

router = APIRouter(prefix="/api/assistant", tags=["assistant"])


def get_assistant_service(client: AsyncClient = Depends(get_supabase)) -> AssistantService:
    return AssistantService(client)


def _client_ip(request: Request):
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


@router.post("/chat", response_model=ChatResponse)
async def chat(
    body: ChatRequest,
    request: Request,
    current_user: AuthenticatedUser = Depends(get_current_user),
    service: AssistantService = Depends(get_assistant_service),
):
    """
    Send the conversation so far and get the assistant's next message.

    Returns 400 without messages, 429 when the per-user rate limit is hit
    and 502 when the model provider fails.
    """
    if not body.messages:
        raise ValidationError("messages is required", field="messages")
    if not any(m.role == "user" and m.content.strip() for m in body.messages):
        raise ValidationError("messages must include a user message", field="messages")

    reply = await service.chat(
        current_user.id,
        [m.model_dump() for m in body.messages],
        ip=_client_ip(request),
    )
    return ChatResponse(data=AssistantReply(**reply))
