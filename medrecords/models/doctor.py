"""Pydantic model for doctor profiles."""
from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

DoctorStatus = Literal["pending", "active", "suspended"]


class Doctor(BaseModel):
    model_config = ConfigDict(extra="allow")

    uid: Optional[str] = None
    email: Optional[str] = None
    fullName: Optional[str] = None
    role: str = "doctor"
    status: DoctorStatus = "pending"

    specialization: Optional[str] = None
    licenseNumber: Optional[str] = None
    workExperience: Optional[str] = None
    education: Optional[str] = None
    licenseImageUrl: Optional[str] = None
    approved: bool = False
    activePatientCount: int = Field(0, ge=0)

    fcmToken: Optional[str] = None
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None


class DoctorApproval(BaseModel):
    approved: bool
