"""Access-control records.

A Permission document lives at ``patients/{patientId}/permissions/{doctorId}``;
its existence is the grant. An AccessRequest lives at
``patients/{patientId}/accessRequests/{doctorId}`` and is advisory only.
"""
from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field

PERMISSIONS = "permissions"
ACCESS_REQUESTS = "accessRequests"


def permissions_path(patient_id: str) -> str:
    return f"patients/{patient_id}/{PERMISSIONS}"


def access_requests_path(patient_id: str) -> str:
    return f"patients/{patient_id}/{ACCESS_REQUESTS}"


class Permission(BaseModel):
    doctorId: str = Field(..., min_length=1)
    patientId: str = Field(..., min_length=1)
    grantedAt: datetime
    lastUpdated: datetime
    status: Literal["active", "revoked"] = "active"
    doctorName: str = "Unknown"
    doctorSpecialty: str = "Unspecified"


class AccessRequest(BaseModel):
    doctorId: str = Field(..., min_length=1)
    patientId: str = Field(..., min_length=1)
    requestedAt: datetime
    notificationSent: bool = False
    # Firestore returns its own timestamp type once the server fills it in
    notificationSentAt: Optional[Any] = None
