"""Business logic / service layer for patient operations.

Reads go through the cache-aside store; every write invalidates the
patient's cache entry and cached patient searches.
"""
from datetime import datetime, timezone
from typing import List, Optional, Union

from medrecords.core.errors import NotFoundError, ValidationError
from medrecords.models.patient import MedicalDataUpdate, Patient

PATIENTS = "patients"
USERS = "users"


class PatientService:
    def __init__(self, store):
        self.store = store

    def get_patient_profile(self, patient_id: str) -> Patient:
        data = self.store.get(PATIENTS, patient_id)
        if data is None:
            raise NotFoundError("Patient")
        return Patient.model_validate({**data, "uid": data.get("uid") or patient_id})

    def update_medical_data(
        self,
        patient_id: str,
        medical_data: Union[MedicalDataUpdate, dict],
    ) -> Patient:
        if not isinstance(medical_data, MedicalDataUpdate):
            medical_data = MedicalDataUpdate.model_validate(medical_data)

        update = medical_data.to_document()
        update["updatedAt"] = datetime.now(timezone.utc)
        self.store.update(PATIENTS, patient_id, update)
        return self.get_patient_profile(patient_id)

    def search_patients(
        self,
        email: Optional[str] = None,
        phone: Optional[str] = None,
        name: Optional[str] = None,
    ) -> List[dict]:
        """
        Search by email, phone or name prefix. Returns only the fields a
        doctor needs to pick a patient, never the medical record itself.
        """
        if not (email or phone or name):
            raise ValidationError(
                "At least one search parameter is required (email, phone, or name)"
            )

        conditions = []
        if email:
            conditions.append(("email", "==", email.lower()))
        if phone:
            conditions.append(("phone", "==", phone))
        if name:
            conditions.append(("fullName", ">=", name))
            conditions.append(("fullName", "<=", name + "\uf8ff"))

        params = {"email": email, "phone": phone, "name": name}
        results = self.store.search(PATIENTS, params, conditions)

        return [
            {
                "id": p.get("uid") or p["id"],
                "name": p.get("fullName"),
                "age": p.get("age"),
                "gender": p.get("gender"),
                "lastUpdated": p.get("updatedAt"),
                "hasActiveMedicalConditions": bool(p.get("medicalConditions")),
            }
            for p in results
        ]

    def register_push_token(self, uid: str, token: str) -> None:
        self.store.set(
            USERS,
            uid,
            {"fcmToken": token, "updatedAt": datetime.now(timezone.utc)},
            merge=True,
        )
