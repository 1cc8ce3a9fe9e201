from __future__ import annotations

from fastapi import APIRouter, Cookie, Depends, Header, HTTPException, Query, Request, Response

from app.api.common import (
    build_page,
    domain_errors_as_http,
    inquiry_id_or_400,
    page_window_or_400,
    serialize_projection,
)
from app.core.config import settings
from app.core.deps import get_inquiry_service, get_rate_limiter
from app.schemas.inquiry import (
    InquiryCreate,
    InquiryPage,
    InquiryPasswordVerified,
    InquiryPasswordVerify,
    InquiryRead,
)
from app.services.inquiry_access import issue_access_token, read_unlocked_ids
from app.services.inquiry_service import InquiryService, project
from app.services.rate_limit import RateLimiter, first_blocked, password_attempt_keys

router = APIRouter()

ACCESS_HEADER = "X-Inquiry-Access"


def _client_ip(request: Request) -> str:
    xff = str(request.headers.get("x-forwarded-for") or "").strip()
    if xff:
        first = xff.split(",")[0].strip()
        if first:
            return first
    client = request.client
    return str(client.host if client else "unknown")


def _access_token(cookie_token: str | None, header_token: str | None) -> str | None:
    return str(header_token or "").strip() or str(cookie_token or "").strip() or None


def _rate_limit_password_or_429(limiter: RateLimiter, *, client_ip: str, inquiry_id: int) -> None:
    blocked = first_blocked(
        limiter,
        password_attempt_keys(client_ip=client_ip, inquiry_id=inquiry_id),
        limit=int(max(settings.INQUIRY_PASSWORD_RATE_LIMIT, 1)),
        window_seconds=int(max(settings.INQUIRY_PASSWORD_RATE_LIMIT_WINDOW_SECONDS, 1)),
    )
    if blocked is not None:
        raise HTTPException(
            status_code=429,
            detail=f"비밀번호 확인 시도가 너무 많습니다. {max(blocked.retry_after_seconds, 1)}초 후 다시 시도해주세요.",
        )


@router.get("", response_model=InquiryPage)
def list_inquiries(
    page: int = Query(default=1),
    limit: int = Query(default=10),
    is_answered: bool | None = Query(default=None),
    is_secret: bool | None = Query(default=None),
    service: InquiryService = Depends(get_inquiry_service),
):
    offset, size = page_window_or_400(page, limit)
    rows, total = service.list_page(offset=offset, limit=size, is_answered=is_answered, is_secret=is_secret)
    return build_page(rows, page=page, limit=size, total=total)


@router.post("", response_model=InquiryRead, status_code=201)
def create_inquiry(payload: InquiryCreate, service: InquiryService = Depends(get_inquiry_service)):
    with domain_errors_as_http():
        row = service.create(payload.model_dump())
    # The author has just typed the password, so show them their own post.
    return serialize_projection(project(row, verified=True))


@router.get("/{inquiry_id}", response_model=InquiryRead)
def get_inquiry(
    inquiry_id: int,
    access_cookie: str | None = Cookie(default=None, alias=settings.INQUIRY_ACCESS_COOKIE_NAME),
    access_header: str | None = Header(default=None, alias=ACCESS_HEADER),
    service: InquiryService = Depends(get_inquiry_service),
):
    inquiry_id = inquiry_id_or_400(inquiry_id)
    verified = inquiry_id in read_unlocked_ids(_access_token(access_cookie, access_header))
    with domain_errors_as_http():
        view = service.view(inquiry_id, verified)
    return serialize_projection(view)


@router.post("/{inquiry_id}/verify-password", response_model=InquiryPasswordVerified)
def verify_inquiry_password(
    inquiry_id: int,
    payload: InquiryPasswordVerify,
    request: Request,
    response: Response,
    access_cookie: str | None = Cookie(default=None, alias=settings.INQUIRY_ACCESS_COOKIE_NAME),
    access_header: str | None = Header(default=None, alias=ACCESS_HEADER),
    service: InquiryService = Depends(get_inquiry_service),
    limiter: RateLimiter = Depends(get_rate_limiter),
):
    inquiry_id = inquiry_id_or_400(inquiry_id)
    if not str(payload.password or ""):
        raise HTTPException(status_code=400, detail="비밀번호를 입력해주세요.")
    _rate_limit_password_or_429(limiter, client_ip=_client_ip(request), inquiry_id=inquiry_id)
    with domain_errors_as_http():
        ok = service.verify_password(inquiry_id, payload.password)
    if not ok:
        raise HTTPException(status_code=401, detail="비밀번호가 일치하지 않습니다.")

    token = issue_access_token(read_unlocked_ids(_access_token(access_cookie, access_header)), inquiry_id)
    response.set_cookie(
        key=settings.INQUIRY_ACCESS_COOKIE_NAME,
        value=token,
        httponly=True,
        secure=False,
        samesite="lax",
        max_age=settings.INQUIRY_ACCESS_TTL_MINUTES * 60,
    )
    return InquiryPasswordVerified(verified=True, inquiry_id=inquiry_id, access_token=token)
