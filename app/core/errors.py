"""
Application error taxonomy
Each error carries an HTTP status code and a machine-readable code
"""

from typing import Optional


class AppError(Exception):
    """Base class for errors that map onto an HTTP response"""

    status_code: int = 500
    default_code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message}


class ValidationError(AppError):
    """Malformed or out-of-range input (400)"""
    status_code = 400
    default_code = "VALIDATION_ERROR"


class AuthenticationError(AppError):
    """Missing or invalid credentials (401)"""
    status_code = 401
    default_code = "UNAUTHENTICATED"


class AuthorizationError(AppError):
    """Authenticated actor may not perform this action (403)"""
    status_code = 403
    default_code = "FORBIDDEN"


class NotFoundError(AppError):
    """Resource does not exist (404)"""
    status_code = 404
    default_code = "NOT_FOUND"


class ConflictError(AppError):
    """Request conflicts with the current state of a resource (409)"""
    status_code = 409
    default_code = "CONFLICT"


class InvalidTransitionError(ConflictError):
    """Requested job status is not reachable from the current one"""

    default_code = "INVALID_TRANSITION"

    def __init__(self, current_status: str, requested_status: str):
        super().__init__(
            f"Invalid status transition from '{current_status}' to '{requested_status}'"
        )
        self.current_status = current_status
        self.requested_status = requested_status
