from __future__ import annotations

import hmac
from typing import Optional

from fastapi import FastAPI, Header, HTTPException
from pydantic import BaseModel

from app.core.config import settings
from app.services.email_service import EmailDeliveryError, send_email_via_smtp

app = FastAPI(title="inquiry-email-service")


class InternalEmailSend(BaseModel):
    email: str
    subject: str
    html: str
    text: Optional[str] = None


@app.get("/health")
def health():
    return {"status": "ok", "service": "email-service"}


@app.post("/internal/send-email")
def internal_send_email(payload: InternalEmailSend, x_internal_token: str | None = Header(default=None)):
    expected = str(settings.INTERNAL_SERVICE_TOKEN or "").strip()
    if not expected:
        raise HTTPException(status_code=500, detail="INTERNAL_SERVICE_TOKEN is not configured")
    if not hmac.compare_digest(str(x_internal_token or "").strip().encode("utf-8"), expected.encode("utf-8")):
        raise HTTPException(status_code=401, detail="Invalid internal token")
    try:
        result = send_email_via_smtp(email=payload.email, subject=payload.subject, html=payload.html, text=payload.text)
    except EmailDeliveryError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    return {"status": "sent", "result": result}
