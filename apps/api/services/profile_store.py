"""
Profile Store Adapter

Fetches, creates and updates the persisted profile record for a user
identifier. Knows nothing about auth tokens or sessions.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Union

import httpx
from pydantic import ValidationError as PydanticValidationError
from supabase import AsyncClient, PostgrestAPIError

from core.exceptions import (
    InvalidProfileError,
    ProfileConflictError,
    ProfileNotFoundError,
    ProfileStoreError,
)
from models import ROLE_FIELDS, Profile, ProfileInput, ProfilePatch, Role, profile_from_row

logger = logging.getLogger(__name__)

UNIQUE_VIOLATION = "23505"

PROFILE_TABLE = "profiles"


class ProfileStore(ABC):
    """Contract for profile persistence."""

    @abstractmethod
    async def create(self, identifier: str, data: Union[ProfileInput, Dict[str, Any]]) -> Profile:
        """Raises ProfileConflictError if one exists, InvalidProfileError on bad input."""
        pass

    @abstractmethod
    async def get(self, identifier: str) -> Profile:
        """Raises ProfileNotFoundError when absent, ProfileStoreError on transport failure."""
        pass

    @abstractmethod
    async def update(self, identifier: str, patch: Union[ProfilePatch, Dict[str, Any]]) -> Profile:
        """Partial update. Raises ProfileNotFoundError when absent."""
        pass


def coerce_profile_input(data: Union[ProfileInput, Dict[str, Any]]) -> ProfileInput:
    """Validate raw profile input, mapping failures to InvalidProfileError."""
    if isinstance(data, ProfileInput):
        return data
    role = (data or {}).get("role")
    if role is None:
        raise InvalidProfileError("Profile role is required")
    if role not in {r.value for r in Role}:
        raise InvalidProfileError(f"Unrecognised role: {role!r}")
    try:
        return ProfileInput.model_validate(data)
    except PydanticValidationError as e:
        raise InvalidProfileError(f"Invalid profile input: {e.errors()[0]['msg']}") from e


def coerce_profile_patch(patch: Union[ProfilePatch, Dict[str, Any]]) -> ProfilePatch:
    if isinstance(patch, ProfilePatch):
        return patch
    try:
        return ProfilePatch.model_validate(patch)
    except PydanticValidationError as e:
        raise InvalidProfileError(f"Invalid profile update: {e.errors()[0]['msg']}") from e


class SupabaseProfileStore(ProfileStore):
    """Profile store over the Supabase `profiles` table."""

    def __init__(self, client: AsyncClient, table_name: str = PROFILE_TABLE):
        self.client = client
        self.table_name = table_name

    def _table(self):
        return self.client.table(self.table_name)

    async def create(self, identifier: str, data: Union[ProfileInput, Dict[str, Any]]) -> Profile:
        profile_input = coerce_profile_input(data)
        try:
            response = await self._table().insert(profile_input.to_row(identifier)).execute()
        except PostgrestAPIError as e:
            if e.code == UNIQUE_VIOLATION:
                raise ProfileConflictError(identifier) from e
            raise ProfileStoreError(f"Profile create failed: {e.message}") from e
        except httpx.HTTPError as e:
            raise ProfileStoreError(f"Profile create failed: {e}") from e

        if not response.data:
            raise ProfileStoreError("Profile create returned no row")
        logger.info(f"Created {profile_input.role.value} profile for {identifier}")
        return self._parse(response.data[0])

    async def get(self, identifier: str) -> Profile:
        try:
            response = await self._table().select("*").eq("id", identifier).limit(1).execute()
        except PostgrestAPIError as e:
            raise ProfileStoreError(f"Profile lookup failed: {e.message}") from e
        except httpx.HTTPError as e:
            raise ProfileStoreError(f"Profile lookup failed: {e}") from e

        if not response.data:
            raise ProfileNotFoundError(identifier)
        return self._parse(response.data[0])

    async def update(self, identifier: str, patch: Union[ProfilePatch, Dict[str, Any]]) -> Profile:
        profile_patch = coerce_profile_patch(patch)
        changes = profile_patch.to_row()
        if not changes:
            return await self.get(identifier)

        # role-specific columns must match the stored role
        if set(changes) & set().union(*ROLE_FIELDS.values()):
            current = await self.get(identifier)
            foreign = profile_patch.fields_foreign_to(current.role)
            if foreign:
                raise InvalidProfileError(
                    f"{', '.join(foreign)} cannot be set on a {current.role} profile"
                )

        try:
            response = await self._table().update(changes).eq("id", identifier).execute()
        except PostgrestAPIError as e:
            raise ProfileStoreError(f"Profile update failed: {e.message}") from e
        except httpx.HTTPError as e:
            raise ProfileStoreError(f"Profile update failed: {e}") from e

        if not response.data:
            raise ProfileNotFoundError(identifier)
        return self._parse(response.data[0])

    async def list_by_role(self, role: Role) -> List[Profile]:
        """All coaches or all players, ordered by display name."""
        try:
            response = await (
                self._table()
                .select("*")
                .eq("role", Role(role).value)
                .order("display_name")
                .execute()
            )
        except (PostgrestAPIError, httpx.HTTPError) as e:
            raise ProfileStoreError(f"Profile listing failed: {e}") from e
        return [self._parse(row) for row in response.data or []]

    async def delete(self, identifier: str) -> None:
        try:
            await self._table().delete().eq("id", identifier).execute()
        except (PostgrestAPIError, httpx.HTTPError) as e:
            raise ProfileStoreError(f"Profile delete failed: {e}") from e

    @staticmethod
    def _parse(row: Dict[str, Any]) -> Profile:
        try:
            return profile_from_row(row)
        except PydanticValidationError as e:
            raise ProfileStoreError(f"Malformed profile row: {e.errors()[0]['msg']}") from e
