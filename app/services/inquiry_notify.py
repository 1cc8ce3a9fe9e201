from __future__ import annotations

import logging
from dataclasses import dataclass
from html import escape
from typing import Protocol

from app.models.inquiry import Inquiry
from app.services.email_service import EmailDeliveryError, send_email

logger = logging.getLogger("app.inquiries")


@dataclass
class NotificationResult:
    sent: bool
    provider: str | None = None
    error: str | None = None
    mocked: bool = False


@dataclass
class AnswerEmail:
    subject: str
    html: str


class NotificationPort(Protocol):
    def send(self, recipient: str, subject: str, body: str) -> NotificationResult:
        ...


class EmailNotifier:
    """NotificationPort over the configured mail provider. Never raises."""

    def send(self, recipient: str, subject: str, body: str) -> NotificationResult:
        try:
            payload = send_email(email=recipient, subject=subject, html=body)
        except EmailDeliveryError as exc:
            logger.error("Answer notification delivery failed: %s", exc)
            return NotificationResult(sent=False, error=str(exc))
        except Exception as exc:  # transport bugs must not fail the answer write
            logger.exception("Unexpected error while sending answer notification")
            return NotificationResult(sent=False, error=exc.__class__.__name__)
        return NotificationResult(
            sent=bool(payload.get("sent")),
            provider=str(payload.get("provider") or "") or None,
            mocked=bool(payload.get("mocked")),
        )


def _multiline(value: str | None) -> str:
    return escape(str(value or "")).replace("\n", "<br>")


def build_answer_email(inquiry: Inquiry, *, site_url: str) -> AnswerEmail:
    title = str(inquiry.title or "").strip()
    subject = f'[Greensupia] 문의글 "{title}"에 답변이 등록되었습니다'
    link = f"{str(site_url or '').rstrip('/')}/inquiry/{inquiry.id}"
    html = f"""<!DOCTYPE html>
<html lang="ko">
<head><meta charset="UTF-8"><title>문의글 답변 알림</title></head>
<body style="font-family: sans-serif; line-height: 1.6; color: #333;">
  <div style="max-width: 600px; margin: 0 auto; padding: 20px;">
    <h1>문의글 답변 알림</h1>
    <p>안녕하세요! 문의하신 내용에 답변이 등록되었습니다.</p>
    <h2>문의 내용</h2>
    <p>
      <strong>제목:</strong> {escape(title)}<br>
      <strong>작성자:</strong> {escape(str(inquiry.author or ""))}<br><br>
      {_multiline(inquiry.content)}
    </p>
    <h2>답변</h2>
    <p>{_multiline(inquiry.answer)}</p>
    <p><a href="{escape(link, quote=True)}">문의글 보기</a></p>
    <p style="color: #666; font-size: 14px;">본 메일은 자동으로 발송되었습니다.</p>
  </div>
</body>
</html>
"""
    return AnswerEmail(subject=subject, html=html)
