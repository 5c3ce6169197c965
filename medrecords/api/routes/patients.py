"""Patient-facing routes: profile, medical data and doctor access grants."""

from fastapi import APIRouter, Body, Depends

from medrecords.api.deps import get_services, require_role
from medrecords.models.patient import MedicalDataUpdate

router = APIRouter(prefix="/patients", tags=["patients"])


@router.get("/me")
async def get_profile(user=Depends(require_role(["patient"])), services=Depends(get_services)):
    return services.patients.get_patient_profile(user["uid"])


@router.put("/me/medical-data")
async def update_medical_data(
    payload: MedicalDataUpdate = Body(...),
    user=Depends(require_role(["patient"])),
    services=Depends(get_services),
):
    profile = services.patients.update_medical_data(user["uid"], payload)
    return {"message": "Medical data updated successfully", "profile": profile}


@router.get("/me/doctors")
async def list_my_doctors(user=Depends(require_role(["patient"])), services=Depends(get_services)):
    doctors = services.registry.list_doctors_for_patient(user["uid"])
    return {"items": doctors, "count": len(doctors)}


@router.post("/me/permissions/{doctor_id}", status_code=201)
async def grant_access(
    doctor_id: str,
    user=Depends(require_role(["patient"])),
    services=Depends(get_services),
):
    permission = services.registry.grant_access(user["uid"], doctor_id)
    return {"message": "Access granted", "permission": permission}


@router.delete("/me/permissions/{doctor_id}")
async def revoke_access(
    doctor_id: str,
    user=Depends(require_role(["patient"])),
    services=Depends(get_services),
):
    services.registry.revoke_access(user["uid"], doctor_id)
    return {"message": "Access revoked", "doctorId": doctor_id}


@router.get("/me/access-requests")
async def list_access_requests(
    user=Depends(require_role(["patient"])),
    services=Depends(get_services),
):
    items = services.access_requests.list_for_patient(user["uid"])
    return {"items": items, "count": len(items)}


@router.delete("/me/access-requests/{doctor_id}")
async def deny_access_request(
    doctor_id: str,
    user=Depends(require_role(["patient"])),
    services=Depends(get_services),
):
    services.access_requests.deny_request(user["uid"], doctor_id)
    return {"message": "Access request denied", "doctorId": doctor_id}
