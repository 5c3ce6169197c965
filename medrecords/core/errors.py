"""Domain errors.

Registry and directory operations raise these to their caller; the API
layer maps them to HTTP responses in ``medrecords.main``. Delivery errors
never leave the notification dispatcher or a trigger handler.
"""
from __future__ import annotations

from typing import List, Optional, Union


class MedRecordsError(Exception):
    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code

    def to_dict(self) -> dict:
        return {
            "error": type(self).__name__,
            "message": self.message,
            "code": self.code,
        }


class NotFoundError(MedRecordsError):
    status_code = 404
    code = "NOT_FOUND"

    def __init__(self, resource: str = "Resource", message: Optional[str] = None):
        super().__init__(message or f"{resource} not found")
        self.resource = resource


class ConflictError(MedRecordsError):
    status_code = 409
    code = "CONFLICT"


class ForbiddenError(MedRecordsError):
    status_code = 403
    code = "FORBIDDEN"


class ValidationError(MedRecordsError):
    status_code = 400
    code = "VALIDATION_ERROR"

    def __init__(self, errors: Union[str, List[str]]):
        self.errors = errors if isinstance(errors, list) else [errors]
        super().__init__(", ".join(str(e) for e in self.errors))

    def to_dict(self) -> dict:
        return {**super().to_dict(), "details": self.errors}


class DeliveryError(MedRecordsError):
    """Push endpoint failure; ``code`` is the provider's error code."""

    code = "DELIVERY_ERROR"

    def __init__(self, message: str, code: Optional[str] = None, retryable: bool = True):
        super().__init__(message, code)
        self.retryable = retryable


class MissingTokenError(DeliveryError):
    """The recipient has no registered push token. Retrying cannot help."""

    def __init__(self, user_id: str):
        super().__init__(
            f"No FCM token found for user {user_id}",
            code="MISSING_TOKEN",
            retryable=False,
        )
        self.user_id = user_id
