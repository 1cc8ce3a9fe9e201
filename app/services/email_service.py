from __future__ import annotations

import logging
import re
import smtplib
from email.message import EmailMessage
from email.utils import formataddr
from typing import Any
import httpx

from app.core.config import settings


class EmailDeliveryError(Exception):
    pass


logger = logging.getLogger("uvicorn.error")

_TAG_RE = re.compile(r"<[^>]*>")
_BR_RE = re.compile(r"<br\s*/?>", re.IGNORECASE)


def _normalize_email(value: str | None) -> str:
    return str(value or "").strip().lower()


def _provider() -> str:
    return str(settings.EMAIL_PROVIDER or "dummy").strip().lower()


def _timeout() -> float:
    return float(max(float(settings.EMAIL_TIMEOUT_SECONDS or 0), 1.0))


def html_to_text(html: str) -> str:
    text = _BR_RE.sub("\n", str(html or ""))
    text = _TAG_RE.sub("", text)
    text = (
        text.replace("&nbsp;", " ")
        .replace("&lt;", "<")
        .replace("&gt;", ">")
        .replace("&quot;", '"')
        .replace("&#x27;", "'")
        .replace("&amp;", "&")
    )
    lines = [line.strip() for line in text.splitlines()]
    return "\n".join(line for line in lines if line)


def _mock_send(*, email: str, subject: str) -> dict[str, Any]:
    # Recipient is not logged; the mock only proves the call happened.
    logger.warning("[EMAIL MOCK] subject=%s", subject)
    return {
        "provider": "mock_email",
        "status": "accepted",
        "message": "Email provider response mocked",
        "sent": False,
        "mocked": True,
    }


def _send_smtp(*, email: str, subject: str, html: str, text: str | None = None) -> dict[str, Any]:
    host = str(settings.SMTP_HOST or "").strip()
    port = int(settings.SMTP_PORT or 0)
    username = str(settings.SMTP_USER or "").strip()
    password = str(settings.SMTP_PASSWORD or "").strip()
    sender = str(settings.SMTP_FROM or "").strip()
    use_tls = bool(getattr(settings, "SMTP_USE_TLS", True))
    use_ssl = bool(getattr(settings, "SMTP_USE_SSL", False))

    if not host or not port or not sender:
        raise EmailDeliveryError("SMTP_HOST/SMTP_PORT/SMTP_FROM are not configured")
    if use_tls and use_ssl:
        raise EmailDeliveryError("SMTP_USE_TLS and SMTP_USE_SSL cannot both be enabled")

    msg = EmailMessage()
    msg["From"] = formataddr((str(settings.EMAIL_FROM_NAME or "").strip(), sender))
    msg["To"] = email
    msg["Subject"] = subject
    msg.set_content(text or html_to_text(html))
    msg.add_alternative(html, subtype="html")

    try:
        if use_ssl:
            smtp = smtplib.SMTP_SSL(host=host, port=port, timeout=_timeout())
        else:
            smtp = smtplib.SMTP(host=host, port=port, timeout=_timeout())
        with smtp as client:
            client.ehlo()
            if use_tls:
                client.starttls()
                client.ehlo()
            if username:
                client.login(username, password)
            client.send_message(msg)
    except Exception as exc:
        raise EmailDeliveryError(f"SMTP delivery failed: {exc.__class__.__name__}") from exc

    return {
        "provider": "smtp",
        "status": "accepted",
        "message": "Email sent",
        "sent": True,
    }


def send_email_via_smtp(*, email: str, subject: str, html: str, text: str | None = None) -> dict[str, Any]:
    normalized_email = _normalize_email(email)
    if not normalized_email:
        raise EmailDeliveryError("Recipient address is empty")
    return _send_smtp(email=normalized_email, subject=subject, html=html, text=text)


def _send_via_email_service(*, email: str, subject: str, html: str, text: str | None = None) -> dict[str, Any]:
    base_url = str(settings.EMAIL_SERVICE_URL or "").strip().rstrip("/")
    token = str(settings.INTERNAL_SERVICE_TOKEN or "").strip()
    if not base_url:
        raise EmailDeliveryError("EMAIL_SERVICE_URL is not configured")
    if not token:
        raise EmailDeliveryError("INTERNAL_SERVICE_TOKEN is not configured")
    try:
        with httpx.Client(timeout=_timeout()) as client:
            response = client.post(
                f"{base_url}/internal/send-email",
                headers={"X-Internal-Token": token, "Content-Type": "application/json"},
                json={"email": email, "subject": subject, "html": html, "text": text},
            )
    except Exception as exc:
        raise EmailDeliveryError(f"email-service unreachable: {exc.__class__.__name__}") from exc
    payload: dict[str, Any] = {}
    try:
        payload = response.json() if response.content else {}
    except ValueError:
        payload = {}
    if response.status_code >= 400:
        detail = str(payload.get("detail") or payload.get("error") or response.status_code)
        raise EmailDeliveryError(f"email-service error: {detail}")
    return {
        "provider": "email-service",
        "status": "accepted",
        "message": "Email sent through email-service",
        "sent": True,
        "response": payload,
    }


def send_email(*, email: str, subject: str, html: str, text: str | None = None) -> dict[str, Any]:
    normalized_email = _normalize_email(email)
    if not normalized_email:
        raise EmailDeliveryError("Recipient address is empty")

    provider = _provider()
    if provider in {"", "dummy", "mock", "console"}:
        return _mock_send(email=normalized_email, subject=subject)

    if provider in {"service", "email_service"}:
        return _send_via_email_service(email=normalized_email, subject=subject, html=html, text=text)

    if provider == "smtp":
        return _send_smtp(email=normalized_email, subject=subject, html=html, text=text)

    raise EmailDeliveryError(f"Unknown EMAIL_PROVIDER: {provider}")


def email_provider_health() -> dict[str, Any]:
    provider = _provider()

    if provider in {"", "dummy", "mock", "console"}:
        return {
            "provider": "dummy",
            "status": "ok",
            "mode": "mock",
            "can_send": True,
            "checks": {"mock_mode": True},
            "issues": [],
        }

    if provider in {"service", "email_service"}:
        base_url = str(settings.EMAIL_SERVICE_URL or "").strip().rstrip("/")
        token = str(settings.INTERNAL_SERVICE_TOKEN or "").strip()
        checks = {"email_service_url_configured": bool(base_url), "internal_service_token_configured": bool(token)}
        issues: list[str] = []
        if not checks["email_service_url_configured"]:
            issues.append("EMAIL_SERVICE_URL is not configured")
        if not checks["internal_service_token_configured"]:
            issues.append("INTERNAL_SERVICE_TOKEN is not configured")
        can_send = all(checks.values())
        if can_send:
            try:
                with httpx.Client(timeout=5.0) as client:
                    response = client.get(f"{base_url}/health")
                if response.status_code >= 400:
                    can_send = False
                    issues.append(f"email-service unavailable: HTTP {response.status_code}")
            except httpx.HTTPError as exc:
                can_send = False
                issues.append(f"email-service unavailable: {exc.__class__.__name__}")
        return {
            "provider": "email-service",
            "status": "ok" if can_send else "degraded",
            "mode": "service",
            "can_send": can_send,
            "checks": checks,
            "issues": issues,
        }

    if provider == "smtp":
        host = str(settings.SMTP_HOST or "").strip()
        sender = str(settings.SMTP_FROM or "").strip()
        checks = {"smtp_host_configured": bool(host), "smtp_from_configured": bool(sender)}
        issues = []
        if not checks["smtp_host_configured"]:
            issues.append("SMTP_HOST is not configured")
        if not checks["smtp_from_configured"]:
            issues.append("SMTP_FROM is not configured")
        return {
            "provider": "smtp",
            "status": "ok" if all(checks.values()) else "degraded",
            "mode": "real",
            "can_send": all(checks.values()),
            "checks": checks,
            "issues": issues,
        }

    return {
        "provider": provider,
        "status": "error",
        "mode": "unknown",
        "can_send": False,
        "checks": {"provider_supported": False},
        "issues": [f"Unknown EMAIL_PROVIDER: {provider}"],
    }
