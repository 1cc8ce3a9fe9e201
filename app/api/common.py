from __future__ import annotations

import math
from contextlib import contextmanager

from fastapi import HTTPException

from app.models.inquiry import Inquiry
from app.schemas.inquiry import InquiryListItem, InquiryPage, InquiryRead, Pagination
from app.services.inquiry_errors import (
    InquiryNotFoundError,
    InquiryNotSecretError,
    InquiryValidationError,
)
from app.services.inquiry_service import InquiryProjection

MAX_PAGE_LIMIT = 100


def _to_iso(value) -> str | None:
    return value.isoformat() if value is not None else None


def inquiry_id_or_400(raw: int) -> int:
    if int(raw) <= 0:
        raise HTTPException(status_code=400, detail="올바른 문의글 ID가 아닙니다.")
    return int(raw)


def page_window_or_400(page: int, limit: int) -> tuple[int, int]:
    if page < 1 or limit < 1 or limit > MAX_PAGE_LIMIT:
        raise HTTPException(status_code=400, detail="잘못된 페이지네이션 파라미터입니다.")
    return (page - 1) * limit, limit


def build_page(rows: list[Inquiry], *, page: int, limit: int, total: int) -> InquiryPage:
    total_pages = math.ceil(total / limit) if limit else 0
    return InquiryPage(
        data=[serialize_list_item(row) for row in rows],
        pagination=Pagination(
            page=page,
            limit=limit,
            total=total,
            total_pages=total_pages,
            has_next=page < total_pages,
            has_prev=page > 1,
        ),
    )


def serialize_list_item(row: Inquiry) -> InquiryListItem:
    return InquiryListItem(
        id=row.id,
        title=row.title,
        author=row.author,
        is_secret=bool(row.is_secret),
        is_answered=bool(row.is_answered),
        created_at=_to_iso(row.created_at),
        updated_at=_to_iso(row.updated_at),
    )


def serialize_projection(view: InquiryProjection) -> InquiryRead:
    return InquiryRead(
        id=view.id,
        title=view.title,
        content=view.content,
        author=view.author,
        is_secret=view.is_secret,
        is_answered=view.is_answered,
        requires_password=view.requires_password,
        answer=view.answer,
        answered_at=_to_iso(view.answered_at),
        created_at=_to_iso(view.created_at),
        updated_at=_to_iso(view.updated_at),
    )


@contextmanager
def domain_errors_as_http():
    try:
        yield
    except InquiryValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except InquiryNotFoundError as exc:
        raise HTTPException(status_code=404, detail="문의글을 찾을 수 없습니다.") from exc
    except InquiryNotSecretError as exc:
        raise HTTPException(status_code=400, detail="비밀글이 아닙니다.") from exc
