"""
Supabase Repository

Shared CRUD plumbing for the feature services. Each subclass binds a table
and a pydantic model; query failures surface as DataAccessError and missing
rows as RecordNotFoundError.

Feature services never touch Session State. When a caller omits the acting
user's id, it comes from the `current_user_id` accessor the service was
built with.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Generic, List, Optional, Type, TypeVar, Union

import httpx
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from supabase import AsyncClient, PostgrestAPIError

from core.exceptions import AuthError, DataAccessError, RecordNotFoundError

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

UserIdAccessor = Callable[[], Optional[str]]


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def escape_like(term: str) -> str:
    """Escape LIKE wildcards so the term matches literally."""
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def quote_filter_value(value: str) -> str:
    """
    Double-quote a value for a PostgREST or() list.

    Unquoted values are split on commas and parentheses, so free text must
    always go through here.
    """
    return '"' + value.replace("\\", "\\\\").replace('"', '\\"') + '"'


def ilike_any(columns: List[str], term: str) -> str:
    """or() expression matching `term` as a substring of any of the columns."""
    value = quote_filter_value(f"%{escape_like(term)}%")
    return ",".join(f"{column}.ilike.{value}" for column in columns)


def to_row(data: Union[BaseModel, Dict[str, Any]], partial: bool = False) -> Dict[str, Any]:
    """Convert model input (or a plain dict) into a snake_case row."""
    if isinstance(data, BaseModel):
        return data.model_dump(mode="json", exclude_unset=partial)
    return dict(data)


class SupabaseRepository(Generic[ModelT]):
    """Generic Supabase service for one table."""

    table_name: str = ""
    model: Type[ModelT]
    resource: str = "Record"

    def __init__(self, client: AsyncClient, current_user_id: Optional[UserIdAccessor] = None):
        self.client = client
        self._current_user_id = current_user_id

    def _table(self, name: Optional[str] = None):
        return self.client.table(name or self.table_name)

    def _require_user_id(self, user_id: Optional[str] = None) -> str:
        if user_id:
            return user_id
        resolved = self._current_user_id() if self._current_user_id else None
        if not resolved:
            raise AuthError("not_authenticated", "No signed-in user")
        return resolved

    async def _execute(self, query, action: str) -> Any:
        try:
            return await query.execute()
        except PostgrestAPIError as e:
            logger.error(f"{self.resource} {action} failed: {e.message}")
            raise DataAccessError(f"{self.resource} {action} failed: {e.message}") from e
        except httpx.HTTPError as e:
            logger.error(f"{self.resource} {action} failed: {e}")
            raise DataAccessError(f"{self.resource} {action} failed: {e}") from e

    async def _rows(self, query, action: str = "query") -> List[Dict[str, Any]]:
        response = await self._execute(query, action)
        return list(response.data or [])

    async def _first(self, query, identifier: str, action: str = "lookup") -> Dict[str, Any]:
        rows = await self._rows(query, action)
        if not rows:
            raise RecordNotFoundError(self.resource, identifier)
        return rows[0]

    def _parse(self, row: Dict[str, Any], model: Optional[Type[BaseModel]] = None) -> Any:
        try:
            return (model or self.model).model_validate(row)
        except PydanticValidationError as e:
            raise DataAccessError(f"Malformed {self.resource.lower()} row: {e.errors()[0]['msg']}") from e

    def _parse_many(self, rows: List[Dict[str, Any]], model: Optional[Type[BaseModel]] = None) -> List[Any]:
        return [self._parse(row, model) for row in rows]

    # -------------------------------------------------------------------------
    # CRUD
    # -------------------------------------------------------------------------

    async def get(self, identifier: str) -> ModelT:
        row = await self._first(self._table().select("*").eq("id", identifier).limit(1), identifier)
        return self._parse(row)

    async def _insert(self, row: Dict[str, Any]) -> ModelT:
        rows = await self._rows(self._table().insert(row), "create")
        if not rows:
            raise DataAccessError(f"{self.resource} create returned no row")
        return self._parse(rows[0])

    async def _update(self, identifier: str, changes: Dict[str, Any]) -> ModelT:
        if not changes:
            return await self.get(identifier)
        row = await self._first(
            self._table().update(changes).eq("id", identifier), identifier, "update"
        )
        return self._parse(row)

    async def delete(self, identifier: str) -> None:
        await self._execute(self._table().delete().eq("id", identifier), "delete")
