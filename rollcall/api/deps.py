"""Shared dependencies: JWT auth, role checks and live session wiring."""
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Annotated, Optional

import bcrypt
from fastapi import Depends, Header, HTTPException, Request
from jose import JWTError, jwt

from rollcall.config import settings
from rollcall.models.user import UserRole
from rollcall.services.live_session import SessionManager
from rollcall.services.store import AttendanceStore

UNAUTHORIZED = "Unauthorized, token missing or invalid"


@dataclass(frozen=True)
class Principal:
    """Identity carried by a verified access token."""
    user_id: str
    role: UserRole


def verify_password(plain: str, hashed: str) -> bool:
    return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))


def get_password_hash(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def create_access_token(subject: str, role: str) -> str:
    expire = datetime.utcnow() + timedelta(minutes=settings.jwt_access_token_expire_minutes)
    to_encode = {"sub": subject, "role": role, "exp": expire, "type": "access"}
    return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> Principal:
    """Verify `token` and return its identity. Raises JWTError or ValueError."""
    payload = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    if payload.get("type") != "access":
        raise JWTError("Invalid token type")
    user_id = payload.get("sub")
    if not user_id:
        raise JWTError("Token has no subject")
    return Principal(user_id=user_id, role=UserRole(payload.get("role")))


def _extract_token(authorization: str | None) -> str | None:
    # Accept both "Bearer <token>" and a raw "<token>"
    if not authorization:
        return None
    if authorization.startswith("Bearer "):
        return authorization.split(" ", 1)[1].strip() or None
    return authorization.strip() or None


async def get_current_principal(
    authorization: Annotated[Optional[str], Header()] = None,
) -> Principal:
    token = _extract_token(authorization)
    if not token:
        raise HTTPException(status_code=401, detail=UNAUTHORIZED, headers={"WWW-Authenticate": "Bearer"})
    try:
        return decode_access_token(token)
    except (JWTError, ValueError):
        raise HTTPException(status_code=401, detail=UNAUTHORIZED, headers={"WWW-Authenticate": "Bearer"})


def require_roles(*allowed: UserRole):
    async def checker(principal: Annotated[Principal, Depends(get_current_principal)]):
        if principal.role not in allowed:
            raise HTTPException(status_code=403, detail=f"Forbidden, {allowed[0].value} access required")
        return principal

    return checker


def get_session_manager(request: Request) -> SessionManager:
    return request.app.state.sessions


def get_store(request: Request) -> AttendanceStore:
    return request.app.state.store


# Type aliases for route injection
CurrentUser = Annotated[Principal, Depends(get_current_principal)]
TeacherOnly = Annotated[Principal, Depends(require_roles(UserRole.TEACHER))]
Sessions = Annotated[SessionManager, Depends(get_session_manager)]
Store = Annotated[AttendanceStore, Depends(get_store)]
