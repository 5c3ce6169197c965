"""
FastAPI dependencies: the verified Firebase principal, role checks and the
service graph built at startup.
"""

from typing import Callable, Iterable

from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from firebase_admin import auth

from medrecords.core.errors import ForbiddenError
from medrecords.services.container import Services

# Swagger "Authorize" button + Authorization header binding
security = HTTPBearer(auto_error=True)

_TOKEN_ERRORS = (
    auth.InvalidIdTokenError,
    auth.ExpiredIdTokenError,
    auth.RevokedIdTokenError,
    auth.UserDisabledError,
    ValueError,
)


def get_services(request: Request) -> Services:
    return request.app.state.services


def get_current_user(credentials: HTTPAuthorizationCredentials = Depends(security)) -> dict:
    """
    Decoded Firebase ID token for ``Authorization: Bearer <id_token>``.
    Revoked tokens are rejected so a role change takes effect on refresh.
    """
    try:
        return auth.verify_id_token(credentials.credentials, check_revoked=True)
    except _TOKEN_ERRORS as exc:
        raise HTTPException(status_code=401, detail="Invalid ID token") from exc


def user_roles(user: dict) -> set:
    role = user.get("role") or user.get("roles") or []
    return {role} if isinstance(role, str) else set(role)


def require_role(allowed: Iterable[str]) -> Callable:
    """
    Dependency factory checking the ``role`` custom claim (set_role.py)
    against ``allowed``, e.g. ``require_role(["doctor"])``.
    """
    allowed = set(allowed)

    def _checker(user=Depends(get_current_user)):
        if not user_roles(user) & allowed:
            raise ForbiddenError("Insufficient permissions")
        return user

    return _checker
