"""
Custom exception classes and error handling.

Two families live here:
- Domain errors raised by the Supabase adapters and feature services.
  They carry no HTTP semantics and are safe to use outside a request.
- API exceptions with a consistent response structure for the HTTP handlers.
"""
from fastapi import HTTPException, status
from typing import Optional, Dict, Any


# ---------------------------------------------------------------------------
# Domain errors
# ---------------------------------------------------------------------------

class CoachingError(Exception):
    """Base class for errors raised by the data-access and session layers."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class AuthError(CoachingError):
    """Identity provider action failed (bad credentials, weak password, network)."""

    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = code

    def __repr__(self) -> str:
        return f"AuthError(code={self.code!r}, message={self.message!r})"


class ProfileNotFoundError(CoachingError):
    """No profile row exists for the identifier."""

    def __init__(self, identifier: str):
        super().__init__(f"Profile not found: {identifier}")
        self.identifier = identifier


class ProfileConflictError(CoachingError):
    """A profile already exists for the identifier."""

    def __init__(self, identifier: str):
        super().__init__(f"Profile already exists: {identifier}")
        self.identifier = identifier


class InvalidProfileError(CoachingError):
    """Profile input is malformed (missing or unrecognised role, bad fields)."""


class ProfileStoreError(CoachingError):
    """Transport or serialization failure talking to the profile store."""


class RecordNotFoundError(CoachingError):
    """A feature-service record does not exist."""

    def __init__(self, resource: str, identifier: str):
        super().__init__(f"{resource} not found: {identifier}")
        self.resource = resource
        self.identifier = identifier


class DataAccessError(CoachingError):
    """A feature-service query failed."""


class AccessDeniedError(CoachingError):
    """The caller may not read or change this record."""


class AssistantRateLimitedError(CoachingError):
    """Too many assistant requests inside the rate-limit window."""

    def __init__(self, limit: int, window_s: int):
        super().__init__(f"Rate limit exceeded: {limit} requests per {window_s}s")
        self.limit = limit
        self.window_s = window_s


class ModelProviderError(CoachingError):
    """The language-model provider rejected or failed the request."""


# ---------------------------------------------------------------------------
# API exceptions
# ---------------------------------------------------------------------------

class APIException(HTTPException):
    """Base API exception with consistent structure."""

    def __init__(
        self,
        status_code: int,
        detail: str,
        error_code: Optional[str] = None,
        headers: Optional[Dict[str, Any]] = None
    ):
        super().__init__(status_code=status_code, detail=detail, headers=headers)
        self.error_code = error_code


class NotFoundError(APIException):
    """Resource not found."""

    def __init__(self, resource: str, identifier: str):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"{resource} not found: {identifier}",
            error_code="NOT_FOUND"
        )


class ValidationError(APIException):
    """Validation error."""

    def __init__(self, detail: str, field: Optional[str] = None):
        error_code = f"VALIDATION_ERROR_{field.upper()}" if field else "VALIDATION_ERROR"
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail,
            error_code=error_code
        )


class UnauthorizedError(APIException):
    """Authentication required."""

    def __init__(self, detail: str = "Unauthorized"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            error_code="UNAUTHORIZED",
            headers={"WWW-Authenticate": "Bearer"}
        )


class ForbiddenError(APIException):
    """Access denied."""

    def __init__(self, detail: str = "Forbidden"):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=detail,
            error_code="FORBIDDEN"
        )


class ConflictError(APIException):
    """Resource conflict (e.g., duplicate entry)."""

    def __init__(self, detail: str):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=detail,
            error_code="CONFLICT"
        )


class RateLimitExceededError(APIException):
    """Too many requests within the window."""

    def __init__(self, limit: int, window_s: int):
        super().__init__(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Rate limit exceeded",
            error_code="RATE_LIMITED",
            headers={"Retry-After": str(window_s), "X-RateLimit-Limit": str(limit)},
        )


class UpstreamServiceError(APIException):
    """A third-party provider returned an error."""

    def __init__(self, detail: str = "Model provider error"):
        super().__init__(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=detail,
            error_code="UPSTREAM_ERROR"
        )


def to_api_exception(exc: CoachingError) -> APIException:
    """Map a domain error that reached the HTTP layer onto its API exception."""
    if isinstance(exc, RecordNotFoundError):
        return NotFoundError(exc.resource, exc.identifier)
    if isinstance(exc, ProfileNotFoundError):
        return NotFoundError("Profile", exc.identifier)
    if isinstance(exc, AccessDeniedError):
        return ForbiddenError(exc.message)
    if isinstance(exc, ProfileConflictError):
        return ConflictError(exc.message)
    if isinstance(exc, InvalidProfileError):
        return ValidationError(exc.message)
    if isinstance(exc, AuthError):
        return UnauthorizedError(exc.message)
    if isinstance(exc, AssistantRateLimitedError):
        return RateLimitExceededError(exc.limit, exc.window_s)
    if isinstance(exc, ModelProviderError):
        return UpstreamServiceError()
    return APIException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=exc.message,
        error_code="DATA_ACCESS_ERROR",
    )
