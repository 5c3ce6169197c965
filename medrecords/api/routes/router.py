from fastapi import APIRouter

from medrecords.api.routes.admin import router as admin_router
from medrecords.api.routes.auth import router as auth_router
from medrecords.api.routes.doctors import router as doctors_router
from medrecords.api.routes.patients import router as patients_router

api_router = APIRouter()

api_router.include_router(auth_router)

# Patient routes
api_router.include_router(patients_router)

# Doctor routes
api_router.include_router(doctors_router)

# Admin routes
api_router.include_router(admin_router)
