"""
Error taxonomy for account operations.

Each error is an HTTPException carrying a classification label so the API
layer can render the `{"status", "code", "message"}` envelope.
"""
from typing import Optional, Dict
from fastapi import HTTPException, status


class AccountServiceError(HTTPException):
    """Base class for classified account errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    classification: str = "error"
    default_message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None, headers: Optional[Dict[str, str]] = None):
        super().__init__(
            status_code=self.status_code,
            detail=message or self.default_message,
            headers=headers,
        )

    @property
    def message(self) -> str:
        return self.detail


class ConflictError(AccountServiceError):
    status_code = status.HTTP_409_CONFLICT
    classification = "conflict"
    default_message = "Email in use"


class UnauthorizedError(AccountServiceError):
    status_code = status.HTTP_401_UNAUTHORIZED
    classification = "unauthorized"
    default_message = "Invalid credentials"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message, headers={"WWW-Authenticate": "Bearer"})


class NotFoundError(AccountServiceError):
    status_code = status.HTTP_404_NOT_FOUND
    classification = "not_found"
    default_message = "User not found"


class BadRequestError(AccountServiceError):
    status_code = status.HTTP_400_BAD_REQUEST
    classification = "bad_request"
    default_message = "Bad request"


class InternalError(AccountServiceError):
    pass
