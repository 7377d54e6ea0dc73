from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import Optional, List, Literal

from models import FileComment, FileRecord, FileShare


class CamelSchema(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# Files

class PresignedUploadResponse(CamelSchema):
    path: str
    signed_url: Optional[str] = None
    token: Optional[str] = None
    file_type: str
    expires_in: int


class FileSearchResponse(CamelSchema):
    data: List[FileRecord]
    count: int
    page: int
    page_size: int


class FileListResponse(BaseModel):
    data: List[FileRecord]


class FileResponse(BaseModel):
    data: FileRecord


class ShareRequest(CamelSchema):
    file_id: str
    shared_with_user_id: str
    permission_level: Literal["view", "comment", "edit"] = "view"


class ShareResponse(BaseModel):
    data: FileShare


class RevokeRequest(CamelSchema):
    share_id: str


class CommentRequest(CamelSchema):
    comment: str = Field(..., min_length=1)
    timestamp_position: Optional[float] = None


class CommentResponse(BaseModel):
    data: FileComment


class CommentListResponse(BaseModel):
    data: List[FileComment]


class SuccessResponse(BaseModel):
    success: bool = True


# Assistant

class ChatMessage(BaseModel):
    role: Literal["user", "assistant", "system"]
    content: str


class ChatRequest(BaseModel):
    """`messages` is optional here so an empty or missing list gets the 400 from the handler."""
    messages: Optional[List[ChatMessage]] = None


class AssistantReply(BaseModel):
    id: Optional[str] = None
    role: Literal["assistant"] = "assistant"
    content: str


class ChatResponse(BaseModel):
    data: AssistantReply
