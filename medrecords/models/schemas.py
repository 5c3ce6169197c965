from pydantic import BaseModel, Field
from typing import Optional

# Request bodies and query models for the thin API layer


class PushTokenIn(BaseModel):
    token: str = Field(..., min_length=1)


class PatientSearchParams(BaseModel):
    email: Optional[str] = None
    phone: Optional[str] = None
    name: Optional[str] = None
