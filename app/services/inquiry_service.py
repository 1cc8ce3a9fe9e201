from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from app.models.common import utcnow
from app.models.inquiry import Inquiry
from app.services.inquiry_crypto import DecryptionError, InquiryCryptoBox
from app.services.inquiry_errors import (
    InquiryNotFoundError,
    InquiryNotSecretError,
    InquiryValidationError,
)
from app.services.inquiry_guard import (
    SECRET_CONTENT_PLACEHOLDER,
    AnswerVisibility,
    ContentVisibility,
    decide_disclosure,
)
from app.services.inquiry_notify import NotificationPort, build_answer_email
from app.services.inquiry_store import InquiryStats, InquiryStore

logger = logging.getLogger("app.inquiries")


class NotificationOutcome(str, Enum):
    NOTIFIED = "NOTIFIED"
    FAILED = "FAILED"
    SKIPPED_NO_EMAIL = "SKIPPED_NO_EMAIL"
    DECRYPT_FAILED = "DECRYPT_FAILED"
    MOCKED = "MOCKED"


@dataclass
class AnswerResult:
    inquiry: Inquiry
    notification: NotificationOutcome


@dataclass
class InquiryProjection:
    """Caller-facing view of an inquiry. Has no email or password fields by construction."""

    id: int
    title: str
    content: str
    author: str
    is_secret: bool
    is_answered: bool
    requires_password: bool
    created_at: datetime
    updated_at: datetime
    answer: str | None = None
    answered_at: datetime | None = None


def _clean(value: Any) -> str:
    return str(value or "").strip()


def _require_text(value: Any, field: str) -> str:
    text = _clean(value)
    if not text:
        raise InquiryValidationError(f'Field "{field}" is required')
    return text


def _optional_email(value: Any) -> str | None:
    return _clean(value) or None


def _require_password(value: Any) -> str:
    raw = str(value or "")
    if not raw.strip():
        raise InquiryValidationError('Field "password" is required for a secret inquiry')
    return raw


def project(inquiry: Inquiry, *, verified: bool) -> InquiryProjection:
    disclosure = decide_disclosure(bool(inquiry.is_secret), bool(verified))
    show_content = disclosure.content is ContentVisibility.FULL
    show_answer = disclosure.answer is AnswerVisibility.FULL and bool(inquiry.is_answered)
    return InquiryProjection(
        id=inquiry.id,
        title=inquiry.title,
        content=inquiry.content if show_content else SECRET_CONTENT_PLACEHOLDER,
        author=inquiry.author,
        is_secret=bool(inquiry.is_secret),
        is_answered=bool(inquiry.is_answered),
        requires_password=disclosure.requires_password,
        created_at=inquiry.created_at,
        updated_at=inquiry.updated_at,
        answer=inquiry.answer if show_answer else None,
        answered_at=inquiry.answered_at if show_answer else None,
    )


class InquiryService:
    """Inquiry lifecycle: creation, password-gated disclosure, answers and reply mail.

    This is the only place that decrypts a stored email, and it does so only
    to hand the address to the notifier after an answer is recorded.
    """

    def __init__(
        self,
        store: InquiryStore,
        crypto: InquiryCryptoBox,
        notifier: NotificationPort,
        *,
        site_url: str = "",
    ):
        self.store = store
        self.crypto = crypto
        self.notifier = notifier
        self.site_url = site_url

    def _get_or_404(self, inquiry_id: int) -> Inquiry:
        row = self.store.find_by_id(inquiry_id)
        if row is None:
            raise InquiryNotFoundError(inquiry_id)
        return row

    def _base_fields(self, payload: dict[str, Any]) -> dict[str, Any]:
        fields: dict[str, Any] = {
            "title": _require_text(payload.get("title"), "title"),
            "content": _require_text(payload.get("content"), "content"),
            "author": _require_text(payload.get("author"), "author"),
        }
        email = _optional_email(payload.get("email"))
        fields["email_encrypted"] = self.crypto.encrypt(email) if email else None
        return fields

    def create_public(self, payload: dict[str, Any]) -> Inquiry:
        fields = self._base_fields(payload)
        fields.update({"is_secret": False, "password_hash": None})
        row = self.store.create(fields)
        logger.info("Inquiry created id=%s secret=%s", row.id, False)
        return row

    def create_secret(self, payload: dict[str, Any]) -> Inquiry:
        fields = self._base_fields(payload)
        password = _require_password(payload.get("password"))
        fields.update({"is_secret": True, "password_hash": self.crypto.hash_password(password)})
        row = self.store.create(fields)
        logger.info("Inquiry created id=%s secret=%s", row.id, True)
        return row

    def create(self, payload: dict[str, Any]) -> Inquiry:
        if payload.get("is_secret"):
            return self.create_secret(payload)
        return self.create_public(payload)

    def verify_password(self, inquiry_id: int, candidate: str) -> bool:
        row = self._get_or_404(inquiry_id)
        if not row.is_secret:
            raise InquiryNotSecretError(inquiry_id)
        return self.crypto.verify_password(str(candidate or ""), row.password_hash)

    def view(self, inquiry_id: int, verified: bool) -> InquiryProjection:
        return project(self._get_or_404(inquiry_id), verified=verified)

    def list_page(
        self,
        *,
        offset: int,
        limit: int,
        is_answered: bool | None = None,
        is_secret: bool | None = None,
    ) -> tuple[list[Inquiry], int]:
        return self.store.list_page(offset=offset, limit=limit, is_answered=is_answered, is_secret=is_secret)

    def stats(self) -> InquiryStats:
        return self.store.count_stats()

    def add_answer(self, inquiry_id: int, answer_text: str) -> Inquiry:
        self._get_or_404(inquiry_id)
        answer = _require_text(answer_text, "answer")
        row = self.store.record_answer(inquiry_id, answer, answered_at=utcnow())
        if row is None:
            raise InquiryNotFoundError(inquiry_id)
        logger.info("Inquiry answered id=%s", inquiry_id)
        return row

    def add_answer_with_notification(self, inquiry_id: int, answer_text: str) -> AnswerResult:
        row = self.add_answer(inquiry_id, answer_text)
        return AnswerResult(inquiry=row, notification=self._notify_answer(row))

    def _notify_answer(self, row: Inquiry) -> NotificationOutcome:
        if not row.email_encrypted:
            return NotificationOutcome.SKIPPED_NO_EMAIL
        try:
            recipient = self.crypto.decrypt(row.email_encrypted)
        except DecryptionError:
            logger.error("Cannot decrypt contact email for inquiry id=%s; notification skipped", row.id)
            return NotificationOutcome.DECRYPT_FAILED
        try:
            message = build_answer_email(row, site_url=self.site_url)
            result = self.notifier.send(recipient, message.subject, message.html)
        except Exception as exc:
            # The answer is already committed; delivery errors end here. Messages may carry the address.
            logger.error("Answer notification raised %s for inquiry id=%s", exc.__class__.__name__, row.id)
            return NotificationOutcome.FAILED
        if result.sent:
            logger.info("Answer notification sent for inquiry id=%s", row.id)
            return NotificationOutcome.NOTIFIED
        if result.mocked:
            logger.info("Answer notification mocked for inquiry id=%s (no mail provider)", row.id)
            return NotificationOutcome.MOCKED
        logger.warning("Answer notification not delivered for inquiry id=%s: %s", row.id, result.error or "-")
        return NotificationOutcome.FAILED

    def update_inquiry(self, inquiry_id: int, payload: dict[str, Any]) -> Inquiry:
        row = self._get_or_404(inquiry_id)
        fields: dict[str, Any] = {
            "title": _require_text(payload.get("title"), "title"),
            "content": _require_text(payload.get("content"), "content"),
            "author": _require_text(payload.get("author"), "author"),
        }

        email = _optional_email(payload.get("email"))
        if email:
            fields["email_encrypted"] = self.crypto.encrypt(email)

        requested_secret = payload.get("is_secret")
        is_secret = bool(row.is_secret) if requested_secret is None else bool(requested_secret)
        new_password = str(payload.get("password") or "")
        if is_secret:
            if new_password.strip():
                fields["password_hash"] = self.crypto.hash_password(new_password)
            elif not row.password_hash:
                raise InquiryValidationError('Field "password" is required for a secret inquiry')
        else:
            fields["password_hash"] = None
        fields["is_secret"] = is_secret

        updated = self.store.update(inquiry_id, fields)
        if updated is None:
            raise InquiryNotFoundError(inquiry_id)
        logger.info("Inquiry updated id=%s secret=%s", inquiry_id, is_secret)
        return updated
