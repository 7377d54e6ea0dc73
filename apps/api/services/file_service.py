"""
File Service

Metadata rows in `files`, sharing in `file_shares`, threaded comments in
`file_comments`, objects in Supabase Storage.

A file is visible to a user when they uploaded it, it is public, or it has
been shared with them. Only the uploader may delete, share or revoke.
"""

from __future__ import annotations

import logging
import re
import time
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx
from supabase import StorageException

from core.config import settings
from core.exceptions import AccessDeniedError, DataAccessError, RecordNotFoundError
from models import FileComment, FileRecord, FileShare
from services.supabase_repository import SupabaseRepository, escape_like, ilike_any

logger = logging.getLogger(__name__)

SHARES_TABLE = "file_shares"
COMMENTS_TABLE = "file_comments"

# Supabase signed upload URLs are valid for two hours; the lifetime is not configurable.
SIGNED_UPLOAD_TTL_S = 7200

_UNSAFE_PATH_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def sanitize_path_segment(value: str, fallback: str) -> str:
    cleaned = _UNSAFE_PATH_CHARS.sub("_", value or "").strip("._")
    return cleaned or fallback


def build_storage_path(entity_type: str, user_id: str, file_name: str, now_ms: Optional[int] = None) -> str:
    """`<entityType>/<userId>/<epochMs>-<fileName>` with unsafe characters replaced."""
    stamp = now_ms if now_ms is not None else int(time.time() * 1000)
    return (
        f"{sanitize_path_segment(entity_type, 'general')}/{user_id}/"
        f"{stamp}-{sanitize_path_segment(file_name, 'file')}"
    )


def clamp_page(page: Optional[int], page_size: Optional[int]) -> tuple:
    page_num = max(1, page or 1)
    per_page = max(1, min(page_size or settings.FILES_SEARCH_DEFAULT_PAGE_SIZE, settings.FILES_SEARCH_MAX_PAGE_SIZE))
    return page_num, per_page


@dataclass
class FileSearchPage:
    data: List[FileRecord]
    count: int
    page: int
    page_size: int


class FileService(SupabaseRepository[FileRecord]):
    table_name = "files"
    model = FileRecord
    resource = "File"

    def __init__(self, client, bucket: Optional[str] = None, current_user_id=None):
        super().__init__(client, current_user_id)
        self.bucket = bucket or settings.SUPABASE_STORAGE_BUCKET

    # -------------------------------------------------------------------------
    # Access
    # -------------------------------------------------------------------------

    async def _shared_file_ids(self, user_id: str) -> List[str]:
        rows = await self._rows(
            self._table(SHARES_TABLE).select("file_id").eq("shared_with_user_id", user_id), "share lookup"
        )
        return sorted({row["file_id"] for row in rows})

    async def _visibility_filter(self, user_id: str) -> str:
        clauses = [f"uploaded_by.eq.{user_id}", "is_public.eq.true"]
        shared = await self._shared_file_ids(user_id)
        if shared:
            clauses.append(f"id.in.({','.join(shared)})")
        return ",".join(clauses)

    async def _can_view(self, record: FileRecord, user_id: str) -> bool:
        if record.uploaded_by == user_id or record.is_public:
            return True
        rows = await self._rows(
            self._table(SHARES_TABLE)
            .select("id")
            .eq("file_id", record.id)
            .eq("shared_with_user_id", user_id),
            "share lookup",
        )
        return bool(rows)

    async def get_visible(self, file_id: str, user_id: str) -> FileRecord:
        record = await self.get(file_id)
        if not await self._can_view(record, user_id):
            raise AccessDeniedError(f"No access to file {file_id}")
        return record

    async def get_owned(self, file_id: str, user_id: str) -> FileRecord:
        record = await self.get(file_id)
        if record.uploaded_by != user_id:
            raise AccessDeniedError(f"Only the owner can change file {file_id}")
        return record

    # -------------------------------------------------------------------------
    # Upload
    # -------------------------------------------------------------------------

    async def presigned_upload(
        self,
        user_id: str,
        file_name: str = "file",
        file_type: str = "application/octet-stream",
        entity_type: str = "general",
    ) -> Dict[str, Any]:
        path = build_storage_path(entity_type, user_id, file_name)
        try:
            signed = await self.client.storage.from_(self.bucket).create_signed_upload_url(path)
        except (StorageException, httpx.HTTPError) as e:
            logger.error(f"Signed upload URL failed for {path}: {e}")
            raise DataAccessError(f"Could not create upload URL: {e}") from e

        logger.info(
            "Issued signed upload URL",
            extra={"extra_fields": {"user_id": user_id, "path": path, "file_type": file_type}},
        )
        return {
            "path": signed.get("path") or path,
            "signed_url": signed.get("signed_url") or signed.get("signedUrl"),
            "token": signed.get("token"),
            "file_type": file_type,
            "expires_in": SIGNED_UPLOAD_TTL_S,
        }

    # -------------------------------------------------------------------------
    # Listing
    # -------------------------------------------------------------------------

    async def list_visible(self, user_id: str, entity_type: Optional[str] = None) -> List[FileRecord]:
        query = self._table().select("*").or_(await self._visibility_filter(user_id))
        if entity_type:
            query = query.eq("entity_type", entity_type)
        return self._parse_many(await self._rows(query.order("created_at", desc=True)))

    async def search(
        self,
        user_id: str,
        q: Optional[str] = None,
        entity_type: Optional[str] = None,
        file_type: Optional[str] = None,
        sort: str = "newest",
        page: Optional[int] = None,
        page_size: Optional[int] = None,
    ) -> FileSearchPage:
        page_num, per_page = clamp_page(page, page_size)
        start = (page_num - 1) * per_page

        query = self._table().select("*", count="exact").or_(await self._visibility_filter(user_id))
        if entity_type:
            query = query.eq("entity_type", entity_type)
        if file_type:
            query = query.ilike("file_type", f"{escape_like(file_type)}%")
        if q:
            query = query.or_(ilike_any(["file_name", "description"], q))

        query = query.order("created_at", desc=(sort != "oldest")).range(start, start + per_page - 1)
        response = await self._execute(query, "search")
        records = self._parse_many(list(response.data or []))
        records = await self._attach_relations(records)
        return FileSearchPage(data=records, count=response.count or 0, page=page_num, page_size=per_page)

    async def _attach_relations(self, records: List[FileRecord]) -> List[FileRecord]:
        if not records:
            return records
        ids = [r.id for r in records]
        shares: Dict[str, List[FileShare]] = defaultdict(list)
        comments: Dict[str, List[FileComment]] = defaultdict(list)
        for share in self._parse_many(
            await self._rows(self._table(SHARES_TABLE).select("*").in_("file_id", ids)), FileShare
        ):
            shares[share.file_id].append(share)
        for comment in self._parse_many(
            await self._rows(self._table(COMMENTS_TABLE).select("*").in_("file_id", ids)), FileComment
        ):
            comments[comment.file_id].append(comment)
        return [
            r.model_copy(update={"file_shares": shares.get(r.id, []), "file_comments": comments.get(r.id, [])})
            for r in records
        ]

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    async def delete_owned(self, file_id: str, user_id: str) -> None:
        record = await self.get_owned(file_id, user_id)
        if record.storage_path:
            try:
                await self.client.storage.from_(self.bucket).remove([record.storage_path])
            except (StorageException, httpx.HTTPError) as e:
                raise DataAccessError(f"Could not remove stored object: {e}") from e
        await self.delete(file_id)
        logger.info(f"Deleted file {file_id}", extra={"extra_fields": {"user_id": user_id}})

    async def share(
        self,
        file_id: str,
        user_id: str,
        shared_with_user_id: str,
        permission_level: str = "view",
    ) -> FileShare:
        await self.get_owned(file_id, user_id)
        rows = await self._rows(
            self._table(SHARES_TABLE).insert(
                {
                    "file_id": file_id,
                    "shared_with_user_id": shared_with_user_id,
                    "shared_by_user_id": user_id,
                    "permission_level": permission_level,
                }
            ),
            "share",
        )
        return self._parse(rows[0], FileShare)

    async def revoke(self, share_id: str, user_id: str) -> None:
        rows = await self._rows(self._table(SHARES_TABLE).select("*").eq("id", share_id).limit(1), "share lookup")
        if not rows:
            raise RecordNotFoundError("Share", share_id)
        share = self._parse(rows[0], FileShare)
        await self.get_owned(share.file_id, user_id)
        await self._execute(self._table(SHARES_TABLE).delete().eq("id", share_id), "revoke")

    # -------------------------------------------------------------------------
    # Comments
    # -------------------------------------------------------------------------

    async def comments(self, file_id: str, user_id: str) -> List[FileComment]:
        await self.get_visible(file_id, user_id)
        rows = await self._rows(
            self._table(COMMENTS_TABLE).select("*").eq("file_id", file_id).order("created_at", desc=True)
        )
        return self._parse_many(rows, FileComment)

    async def add_comment(
        self,
        file_id: str,
        user_id: str,
        comment: str,
        timestamp_position: Optional[float] = None,
    ) -> FileComment:
        await self.get_visible(file_id, user_id)
        rows = await self._rows(
            self._table(COMMENTS_TABLE).insert(
                {
                    "file_id": file_id,
                    "user_id": user_id,
                    "comment": comment,
                    "timestamp_position": timestamp_position,
                }
            ),
            "comment",
        )
        return self._parse(rows[0], FileComment)

    async def delete_comment(self, comment_id: str, user_id: str) -> None:
        """Allowed for the comment author or the file owner."""
        rows = await self._rows(
            self._table(COMMENTS_TABLE).select("*").eq("id", comment_id).limit(1), "comment lookup"
        )
        if not rows:
            raise RecordNotFoundError("Comment", comment_id)
        comment = self._parse(rows[0], FileComment)
        if comment.user_id != user_id:
            record = await self.get(comment.file_id)
            if record.uploaded_by != user_id:
                raise AccessDeniedError(f"Cannot delete comment {comment_id}")
        await self._execute(self._table(COMMENTS_TABLE).delete().eq("id", comment_id), "comment delete")

