"""Application error taxonomy.

Services raise these; ``app.main`` turns them into JSON error responses.
"""

from typing import Optional


class AppError(Exception):
    """Base class for errors that are reported to the caller."""

    status_code: int = 500
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.field = field

    def to_dict(self) -> dict:
        return {
            "success": False,
            "error": self.code,
            "message": self.message,
            "field": self.field,
        }


class Unauthorized(AppError):
    status_code = 401
    code = "UNAUTHORIZED"

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message)


class ViewerNotFound(AppError):
    """The session is valid but the user has no row in the store."""

    status_code = 404
    code = "VIEWER_NOT_FOUND"

    def __init__(self, message: str = "User not found"):
        super().__init__(message)


class ValidationError(AppError):
    status_code = 422
    code = "VALIDATION_ERROR"

    def __init__(self, field: str, message: str):
        super().__init__(message, field=field)


class ScopeUnavailable(ValidationError):
    def __init__(self, scope: str):
        super().__init__("type", f"The '{scope}' feed is not available")


class NotFound(AppError):
    status_code = 404
    code = "NOT_FOUND"


class AlreadyExists(AppError):
    status_code = 409
    code = "ALREADY_EXISTS"


class UpstreamFailure(AppError):
    """The identity provider or the storage provider failed."""

    status_code = 502
    code = "UPSTREAM_FAILURE"

    def __init__(self, provider: str, message: str):
        super().__init__(f"{provider}: {message}")
        self.provider = provider
