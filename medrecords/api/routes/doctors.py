"""Doctor-facing routes."""
from fastapi import APIRouter, Depends

from medrecords.api.deps import get_services, require_role
from medrecords.models.schemas import PatientSearchParams

router = APIRouter(prefix="/doctors", tags=["doctors"])


@router.get("/me")
async def get_profile(user=Depends(require_role(["doctor"])), services=Depends(get_services)):
    return services.doctors.get_doctor_profile(user["uid"])


@router.get("/me/patients")
async def list_my_patients(user=Depends(require_role(["doctor"])), services=Depends(get_services)):
    patients = services.registry.list_patients_for_doctor(user["uid"])
    return {"items": patients, "count": len(patients)}


@router.get("/search-patients")
async def search_patients(
    params: PatientSearchParams = Depends(),
    user=Depends(require_role(["doctor"])),
    services=Depends(get_services),
):
    """Only active doctors may search; results never include medical data."""
    services.doctors.require_active(user["uid"])
    results = services.patients.search_patients(**params.model_dump())
    return {"count": len(results), "results": results}


@router.post("/access-requests/{patient_id}", status_code=201)
async def request_access(
    patient_id: str,
    user=Depends(require_role(["doctor"])),
    services=Depends(get_services),
):
    request = services.access_requests.create_request(user["uid"], patient_id)
    return {"message": "Access request sent", "request": request}
