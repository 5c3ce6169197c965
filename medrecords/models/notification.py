"""Notification payloads.

A Notification only lives in the dispatcher queue; after processing it is
written once as a ``delivered`` or ``failed`` log record.
"""
from enum import Enum
from typing import Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from medrecords.core.errors import ValidationError


class NotificationType(str, Enum):
    DIAGNOSIS_UPDATE = "DIAGNOSIS_UPDATE"
    PERMISSION_GRANTED = "PERMISSION_GRANTED"
    PERMISSION_REVOKED = "PERMISSION_REVOKED"
    ACCESS_REQUEST = "ACCESS_REQUEST"
    DOCTOR_APPROVAL = "DOCTOR_APPROVAL"


Priority = Literal["high", "normal", "low"]


class Notification(BaseModel):
    userId: str = Field(..., min_length=1)
    type: NotificationType
    title: str = Field(..., min_length=1)
    body: str = ""
    data: Dict[str, Any] = Field(default_factory=dict)
    priority: Priority = "high"

    # Queue bookkeeping; times are epoch seconds
    retries: int = Field(0, ge=0)
    timestamp: Optional[float] = None
    nextRetry: Optional[float] = None
    seq: int = Field(0, ge=0)

    @classmethod
    def parse(cls, payload: Union["Notification", Dict[str, Any]]) -> "Notification":
        """Build a Notification, raising the domain ValidationError on bad input."""
        if isinstance(payload, cls):
            return payload.model_copy(deep=True)
        try:
            return cls.model_validate(payload)
        except PydanticValidationError as exc:
            raise ValidationError(
                [f"{'.'.join(str(p) for p in e['loc'])}: {e['msg']}" for e in exc.errors()]
            ) from exc

    @property
    def log_id(self) -> str:
        """``{timestamp_ms}_{userId}_{seq}``; seq tells same-millisecond sends apart."""
        return f"{int((self.timestamp or 0) * 1000)}_{self.userId}_{self.seq}"

    def to_record(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")
