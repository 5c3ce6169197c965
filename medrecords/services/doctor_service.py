"""Doctor profiles, search and account approval."""
from datetime import datetime, timezone
from typing import List, Optional

from medrecords.core.errors import ForbiddenError, NotFoundError
from medrecords.models.doctor import Doctor
from medrecords.services import notifications

DOCTORS = "doctors"


class DoctorService:
    def __init__(self, store, notifier):
        self.store = store
        self.notifier = notifier

    def get_doctor_profile(self, doctor_id: str) -> Doctor:
        data = self.store.get(DOCTORS, doctor_id)
        if data is None:
            raise NotFoundError("Doctor")
        return Doctor.model_validate({**data, "uid": data.get("uid") or doctor_id})

    def require_active(self, doctor_id: str) -> Doctor:
        doctor = self.get_doctor_profile(doctor_id)
        if doctor.status != "active":
            raise ForbiddenError("Only active doctors can perform this action")
        return doctor

    def search_doctors(
        self,
        status: Optional[str] = None,
        specialization: Optional[str] = None,
        approved: Optional[bool] = None,
    ) -> List[dict]:
        conditions = []
        if status:
            conditions.append(("status", "==", status))
        if specialization:
            conditions.append(("specialization", "==", specialization))
        if approved is not None:
            conditions.append(("approved", "==", approved))

        params = {"status": status, "specialization": specialization, "approved": approved}
        return self.store.search(DOCTORS, params, conditions)

    def list_pending_doctors(self) -> List[dict]:
        return self.search_doctors(status="pending", approved=False)

    def set_doctor_approval(self, doctor_id: str, approved: bool) -> Doctor:
        """Approving activates the account; withdrawing puts it back to pending."""
        if self.store.get(DOCTORS, doctor_id) is None:
            raise NotFoundError("Doctor")

        self.store.update(
            DOCTORS,
            doctor_id,
            {
                "approved": approved,
                "status": "active" if approved else "pending",
                "updatedAt": datetime.now(timezone.utc),
            },
        )
        self.notifier.send(notifications.doctor_approval(doctor_id, approved))
        return self.get_doctor_profile(doctor_id)
