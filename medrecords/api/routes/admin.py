"""Admin routes for doctor account approval."""
from fastapi import APIRouter, Body, Depends

from medrecords.api.deps import get_services, require_role
from medrecords.models.doctor import DoctorApproval

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/doctors/pending")
async def list_pending_doctors(user=Depends(require_role(["admin"])), services=Depends(get_services)):
    doctors = services.doctors.list_pending_doctors()
    return {"doctors": doctors, "count": len(doctors)}


@router.put("/doctors/{doctor_id}/approval")
async def set_doctor_approval(
    doctor_id: str,
    payload: DoctorApproval = Body(...),
    user=Depends(require_role(["admin"])),
    services=Depends(get_services),
):
    doctor = services.doctors.set_doctor_approval(doctor_id, payload.approved)
    return {
        "message": "Doctor approved" if payload.approved else "Doctor approval revoked",
        "doctorId": doctor_id,
        "status": doctor.status,
    }
