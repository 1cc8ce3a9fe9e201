from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query

from app.api.common import (
    build_page,
    domain_errors_as_http,
    inquiry_id_or_400,
    page_window_or_400,
    serialize_projection,
)
from app.core.deps import get_current_admin, get_inquiry_service
from app.schemas.inquiry import (
    InquiryAnswered,
    InquiryAnswerIn,
    InquiryPage,
    InquiryRead,
    InquiryStatsRead,
    InquiryUpdate,
)
from app.services.inquiry_service import InquiryService, project

router = APIRouter()
logger = logging.getLogger("app.inquiries")


@router.get("", response_model=InquiryPage)
def list_inquiries(
    page: int = Query(default=1),
    limit: int = Query(default=20),
    is_answered: bool | None = Query(default=None),
    is_secret: bool | None = Query(default=None),
    admin: dict = Depends(get_current_admin),
    service: InquiryService = Depends(get_inquiry_service),
):
    offset, size = page_window_or_400(page, limit)
    rows, total = service.list_page(offset=offset, limit=size, is_answered=is_answered, is_secret=is_secret)
    return build_page(rows, page=page, limit=size, total=total)


@router.get("/stats", response_model=InquiryStatsRead)
def inquiry_stats(
    admin: dict = Depends(get_current_admin),
    service: InquiryService = Depends(get_inquiry_service),
):
    stats = service.stats()
    return InquiryStatsRead(total=stats.total, pending=stats.pending, secret=stats.secret)


@router.get("/{inquiry_id}", response_model=InquiryRead)
def get_inquiry(
    inquiry_id: int,
    admin: dict = Depends(get_current_admin),
    service: InquiryService = Depends(get_inquiry_service),
):
    inquiry_id = inquiry_id_or_400(inquiry_id)
    with domain_errors_as_http():
        view = service.view(inquiry_id, True)
    return serialize_projection(view)


@router.put("/{inquiry_id}", response_model=InquiryRead)
def update_inquiry(
    inquiry_id: int,
    payload: InquiryUpdate,
    admin: dict = Depends(get_current_admin),
    service: InquiryService = Depends(get_inquiry_service),
):
    inquiry_id = inquiry_id_or_400(inquiry_id)
    with domain_errors_as_http():
        row = service.update_inquiry(inquiry_id, payload.model_dump())
    logger.info("Inquiry id=%s edited by %s", inquiry_id, admin.get("sub"))
    return serialize_projection(project(row, verified=True))


@router.post("/{inquiry_id}/answer", response_model=InquiryAnswered)
def answer_inquiry(
    inquiry_id: int,
    payload: InquiryAnswerIn,
    admin: dict = Depends(get_current_admin),
    service: InquiryService = Depends(get_inquiry_service),
):
    inquiry_id = inquiry_id_or_400(inquiry_id)
    with domain_errors_as_http():
        result = service.add_answer_with_notification(inquiry_id, payload.answer)
    return InquiryAnswered(
        inquiry=serialize_projection(project(result.inquiry, verified=True)),
        notification=result.notification.value,
    )
