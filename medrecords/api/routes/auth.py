"""Authentication-related routes.

Clients authenticate with Firebase; the backend exposes the verified
principal and stores the device's FCM token for push delivery.
"""
from fastapi import APIRouter, Body, Depends

from medrecords.api.deps import get_current_user, get_services
from medrecords.models.schemas import PushTokenIn

router = APIRouter(prefix="/auth", tags=["auth"])


@router.get("/me")
async def get_me(user=Depends(get_current_user)):
    return {"uid": user.get("uid"), "email": user.get("email"), "role": user.get("role")}


@router.put("/push-token")
async def register_push_token(
    payload: PushTokenIn = Body(...),
    user=Depends(get_current_user),
    services=Depends(get_services),
):
    services.patients.register_push_token(user["uid"], payload.token)
    return {"message": "Push token registered"}
