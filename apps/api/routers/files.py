"""
File API Endpoints

Upload URLs, search, listing, sharing and comments for stored files.
Every route needs a bearer token; ownership is enforced by FileService
because the service-role client bypasses row level security.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from supabase import AsyncClient

from core.auth import get_current_user
from core.supabase import get_supabase
from models import AuthenticatedUser
from schemas import (
    CommentListResponse,
    CommentRequest,
    CommentResponse,
    FileListResponse,
    FileResponse,
    FileSearchResponse,
    PresignedUploadResponse,
    RevokeRequest,
    ShareRequest,
    ShareResponse,
    SuccessResponse,
)
from services.file_service import FileService

router = APIRouter(prefix="/api/files", tags=["files"])


def get_file_service(client: AsyncClient = Depends(get_supabase)) -> FileService:
    return FileService(client)


@router.get("/presigned", response_model=PresignedUploadResponse, response_model_by_alias=True)
async def presigned_upload(
    file_name: str = Query("file", alias="fileName"),
    file_type: str = Query("application/octet-stream", alias="fileType"),
    entity_type: str = Query("general", alias="entityType"),
    current_user: AuthenticatedUser = Depends(get_current_user),
    service: FileService = Depends(get_file_service),
):
    """
    Storage path plus a signed upload URL for a new file.

    Supabase fixes the lifetime of signed upload URLs, so an `expiresIn`
    query value is not honoured; the response reports the real lifetime.
    """
    result = await service.presigned_upload(
        current_user.id,
        file_name=file_name,
        file_type=file_type,
        entity_type=entity_type,
    )
    return PresignedUploadResponse(**result)


@router.get("/search", response_model=FileSearchResponse, response_model_by_alias=True)
async def search_files(
    q: Optional[str] = None,
    entity_type: Optional[str] = Query(None, alias="entityType"),
    file_type: Optional[str] = Query(None, alias="fileType"),
    sort: str = Query("newest", pattern="^(newest|oldest)$"),
    page: Optional[int] = None,
    page_size: Optional[int] = Query(None, alias="pageSize"),
    current_user: AuthenticatedUser = Depends(get_current_user),
    service: FileService = Depends(get_file_service),
):
    """
    Search files visible to the caller.

    Page is clamped to >= 1 and page size to 1..FILES_SEARCH_MAX_PAGE_SIZE.
    """
    result = await service.search(
        current_user.id,
        q=q,
        entity_type=entity_type,
        file_type=file_type,
        sort=sort,
        page=page,
        page_size=page_size,
    )
    return FileSearchResponse(
        data=result.data, count=result.count, page=result.page, page_size=result.page_size
    )


@router.get("", response_model=FileListResponse, response_model_by_alias=True)
async def list_files(
    entity_type: Optional[str] = Query(None, alias="entityType"),
    current_user: AuthenticatedUser = Depends(get_current_user),
    service: FileService = Depends(get_file_service),
):
    return FileListResponse(data=await service.list_visible(current_user.id, entity_type))


@router.post("/share", response_model=ShareResponse, response_model_by_alias=True)
async def share_file(
    request: ShareRequest,
    current_user: AuthenticatedUser = Depends(get_current_user),
    service: FileService = Depends(get_file_service),
):
    """Share a file the caller owns. The caller is always recorded as the sharer."""
    share = await service.share(
        request.file_id,
        current_user.id,
        request.shared_with_user_id,
        request.permission_level,
    )
    return ShareResponse(data=share)


@router.post("/revoke", response_model=SuccessResponse)
async def revoke_share(
    request: RevokeRequest,
    current_user: AuthenticatedUser = Depends(get_current_user),
    service: FileService = Depends(get_file_service),
):
    await service.revoke(request.share_id, current_user.id)
    return SuccessResponse()


@router.delete("/comments/{comment_id}", response_model=SuccessResponse)
async def delete_comment(
    comment_id: str,
    current_user: AuthenticatedUser = Depends(get_current_user),
    service: FileService = Depends(get_file_service),
):
    await service.delete_comment(comment_id, current_user.id)
    return SuccessResponse()


@router.get("/{file_id}", response_model=FileResponse, response_model_by_alias=True)
async def get_file(
    file_id: str,
    current_user: AuthenticatedUser = Depends(get_current_user),
    service: FileService = Depends(get_file_service),
):
    return FileResponse(data=await service.get_visible(file_id, current_user.id))


@router.delete("/{file_id}", response_model=SuccessResponse)
async def delete_file(
    file_id: str,
    current_user: AuthenticatedUser = Depends(get_current_user),
    service: FileService = Depends(get_file_service),
):
    await service.delete_owned(file_id, current_user.id)
    return SuccessResponse()


@router.get("/{file_id}/comments", response_model=CommentListResponse, response_model_by_alias=True)
async def list_comments(
    file_id: str,
    current_user: AuthenticatedUser = Depends(get_current_user),
    service: FileService = Depends(get_file_service),
):
    return CommentListResponse(data=await service.comments(file_id, current_user.id))


@router.post("/{file_id}/comments", response_model=CommentResponse, response_model_by_alias=True)
async def add_comment(
    file_id: str,
    request: CommentRequest,
    current_user: AuthenticatedUser = Depends(get_current_user),
    service: FileService = Depends(get_file_service),
):
    comment = await service.add_comment(
        file_id, current_user.id, request.comment, request.timestamp_position
    )
    return CommentResponse(data=comment)
