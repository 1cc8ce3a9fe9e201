from functools import lru_cache

from fastapi import Depends, HTTPException
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.security import decode_jwt
from app.db.session import get_db
from app.services.inquiry_crypto import InquiryCryptoBox
from app.services.inquiry_notify import EmailNotifier, NotificationPort
from app.services.inquiry_service import InquiryService
from app.services.inquiry_store import InquiryStore
from app.services.rate_limit import RateLimiter, build_rate_limiter

bearer = HTTPBearer(auto_error=False)

def get_current_admin(creds: HTTPAuthorizationCredentials = Depends(bearer)) -> dict:
    if not creds:
        raise HTTPException(status_code=401, detail="인증 토큰이 없습니다.")
    try:
        payload = decode_jwt(creds.credentials, settings.ADMIN_JWT_SECRET)
    except JWTError:
        raise HTTPException(status_code=401, detail="유효하지 않은 토큰입니다.")
    if payload.get("role") != "ADMIN":
        raise HTTPException(status_code=403, detail="권한이 없습니다.")
    return payload

@lru_cache(maxsize=1)
def get_crypto_box() -> InquiryCryptoBox:
    return InquiryCryptoBox(settings.INQUIRY_ENCRYPTION_KEY)

@lru_cache(maxsize=1)
def get_notifier() -> NotificationPort:
    return EmailNotifier()

@lru_cache(maxsize=1)
def get_rate_limiter() -> RateLimiter:
    return build_rate_limiter(settings.REDIS_URL)

def get_inquiry_service(
    db: Session = Depends(get_db),
    crypto: InquiryCryptoBox = Depends(get_crypto_box),
    notifier: NotificationPort = Depends(get_notifier),
) -> InquiryService:
    return InquiryService(InquiryStore(db), crypto, notifier, site_url=settings.SITE_URL)
