"""Pydantic models for patient profiles stored in Firestore.

Use these for request/response validation; the stored document keeps the
camelCase field names the mobile clients write.
"""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _clean_strings(v):
    if not isinstance(v, list):
        return []
    return [s.strip() for s in v if isinstance(s, str) and s.strip()]


class Patient(BaseModel):
    model_config = ConfigDict(extra="allow")

    uid: Optional[str] = None
    email: Optional[str] = None
    fullName: Optional[str] = None
    role: str = "patient"
    status: str = "active"
    phone: Optional[str] = None

    age: Optional[int] = Field(None, ge=0, le=120)
    gender: Optional[str] = None
    medicalConditions: List[str] = []
    hadSurgeries: bool = False
    surgeries: List[str] = []

    fcmToken: Optional[str] = None
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None


class MedicalDataUpdate(BaseModel):
    medicalConditions: List[str] = []
    hadSurgeries: bool = False
    surgeries: List[str] = []

    @field_validator("medicalConditions", "surgeries", mode="before")
    @classmethod
    def strip_entries(cls, v):
        return _clean_strings(v)

    def to_document(self) -> dict:
        # Surgeries only count when the patient says they had any
        return {
            "medicalConditions": self.medicalConditions,
            "hadSurgeries": self.hadSurgeries,
            "surgeries": self.surgeries if self.hadSurgeries else [],
        }
