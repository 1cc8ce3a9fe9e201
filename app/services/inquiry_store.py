from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.models.common import utcnow
from app.models.inquiry import Inquiry

_WRITABLE_FIELDS = {
    "title",
    "content",
    "author",
    "email_encrypted",
    "is_secret",
    "password_hash",
    "answer",
}


@dataclass
class InquiryStats:
    total: int
    pending: int
    secret: int


class InquiryStore:
    """Persistence for inquiries. Holds no business rules; every write commits."""

    def __init__(self, db: Session):
        self.db = db

    def find_by_id(self, inquiry_id: int) -> Inquiry | None:
        return self.db.get(Inquiry, inquiry_id)

    def create(self, fields: dict[str, Any]) -> Inquiry:
        row = Inquiry(**{key: value for key, value in fields.items() if key in _WRITABLE_FIELDS})
        row.is_answered = False
        row.answer = None
        row.answered_at = None
        self.db.add(row)
        self.db.commit()
        self.db.refresh(row)
        return row

    def update(self, inquiry_id: int, fields: dict[str, Any]) -> Inquiry | None:
        row = self.find_by_id(inquiry_id)
        if row is None:
            return None
        for key, value in fields.items():
            if key in _WRITABLE_FIELDS:
                setattr(row, key, value)
        row.updated_at = utcnow()
        self.db.add(row)
        self.db.commit()
        self.db.refresh(row)
        return row

    def record_answer(self, inquiry_id: int, answer: str, *, answered_at: datetime) -> Inquiry | None:
        """Store the answer text; flip ``is_answered`` only on the first answer.

        The flip is a single conditional UPDATE, so of two racing first answers
        only the one that still sees ``is_answered = false`` sets ``answered_at``.
        """
        now = utcnow()
        touched = (
            self.db.query(Inquiry)
            .filter(Inquiry.id == inquiry_id)
            .update({Inquiry.answer: answer, Inquiry.updated_at: now}, synchronize_session=False)
        )
        if not touched:
            self.db.rollback()
            return None
        (
            self.db.query(Inquiry)
            .filter(Inquiry.id == inquiry_id, Inquiry.is_answered.is_(False))
            .update(
                {Inquiry.is_answered: True, Inquiry.answered_at: answered_at},
                synchronize_session=False,
            )
        )
        self.db.commit()
        row = self.find_by_id(inquiry_id)
        if row is not None:
            self.db.refresh(row)
        return row

    def list_page(
        self,
        *,
        offset: int,
        limit: int,
        is_answered: bool | None = None,
        is_secret: bool | None = None,
    ) -> tuple[list[Inquiry], int]:
        query = self.db.query(Inquiry)
        if is_answered is not None:
            query = query.filter(Inquiry.is_answered.is_(bool(is_answered)))
        if is_secret is not None:
            query = query.filter(Inquiry.is_secret.is_(bool(is_secret)))
        total = query.count()
        rows = query.order_by(Inquiry.created_at.desc(), Inquiry.id.desc()).offset(offset).limit(limit).all()
        return rows, int(total)

    def count_stats(self) -> InquiryStats:
        total = self.db.query(func.count(Inquiry.id)).scalar() or 0
        pending = self.db.query(func.count(Inquiry.id)).filter(Inquiry.is_answered.is_(False)).scalar() or 0
        secret = self.db.query(func.count(Inquiry.id)).filter(Inquiry.is_secret.is_(True)).scalar() or 0
        return InquiryStats(total=int(total), pending=int(pending), secret=int(secret))
