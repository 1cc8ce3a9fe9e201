import hmac
from datetime import timedelta

from fastapi import APIRouter, HTTPException

from app.core.config import settings
from app.core.security import create_jwt, verify_password
from app.schemas.admin import AdminLogin, AdminToken

router = APIRouter()


def _normalize_email(value: str | None) -> str:
    return str(value or "").strip().lower()


@router.post("/login", response_model=AdminToken)
def login(payload: AdminLogin):
    expected_email = _normalize_email(settings.ADMIN_EMAIL)
    email_ok = bool(expected_email) and hmac.compare_digest(
        _normalize_email(payload.email).encode("utf-8"), expected_email.encode("utf-8")
    )
    password_ok = verify_password(payload.password, settings.ADMIN_PASSWORD_HASH)
    if not (email_ok and password_ok):
        raise HTTPException(status_code=401, detail="아이디 또는 비밀번호가 올바르지 않습니다.")

    token = create_jwt(
        {"sub": expected_email, "email": expected_email, "role": "ADMIN"},
        settings.ADMIN_JWT_SECRET,
        timedelta(minutes=settings.ADMIN_JWT_TTL_MINUTES),
    )
    return AdminToken(access_token=token, expires_in=settings.ADMIN_JWT_TTL_MINUTES * 60)
