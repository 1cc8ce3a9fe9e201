from datetime import datetime

from sqlalchemy import Boolean, CheckConstraint, DateTime, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.db.session import Base
from app.models.common import IntIdMixin, TimestampMixin


class Inquiry(Base, IntIdMixin, TimestampMixin):
    __tablename__ = "inquiries"
    __table_args__ = (
        Index("ix_inquiries_created_at", "created_at"),
        CheckConstraint(
            "(is_answered AND answered_at IS NOT NULL) OR (NOT is_answered AND answered_at IS NULL)",
            name="ck_inquiries_answered_at",
        ),
    )

    title: Mapped[str] = mapped_column(String(200), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    author: Mapped[str] = mapped_column(String(100), nullable=False)
    # Ciphertext produced by InquiryCryptoBox; plaintext never lands here.
    email_encrypted: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_secret: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False, index=True)
    password_hash: Mapped[str | None] = mapped_column(String(255), nullable=True)
    is_answered: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False, index=True)
    answer: Mapped[str | None] = mapped_column(Text, nullable=True)
    answered_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
