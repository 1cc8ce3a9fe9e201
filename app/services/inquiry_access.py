from __future__ import annotations

from datetime import timedelta

from jose import JWTError

from app.core.config import settings
from app.core.security import create_jwt, decode_jwt

ACCESS_PURPOSE = "VIEW_INQUIRY"
MAX_UNLOCKED_INQUIRIES = 50


def read_unlocked_ids(token: str | None) -> list[int]:
    """Secret inquiry ids a visitor proved the password for, oldest unlock first.

    Any bad token unlocks nothing.
    """
    raw = str(token or "").strip()
    if not raw:
        return []
    try:
        payload = decode_jwt(raw, settings.INQUIRY_ACCESS_JWT_SECRET)
    except JWTError:
        return []
    if str(payload.get("purpose") or "") != ACCESS_PURPOSE:
        return []
    out: list[int] = []
    for value in payload.get("inquiries") or []:
        try:
            inquiry_id = int(value)
        except (TypeError, ValueError):
            continue
        if inquiry_id not in out:
            out.append(inquiry_id)
    return out


def issue_access_token(unlocked: list[int], inquiry_id: int) -> str:
    # The id just verified goes last, so the cap evicts the oldest unlocks.
    ids = [value for value in unlocked if value != int(inquiry_id)]
    ids.append(int(inquiry_id))
    return create_jwt(
        {"purpose": ACCESS_PURPOSE, "inquiries": ids[-MAX_UNLOCKED_INQUIRIES:]},
        settings.INQUIRY_ACCESS_JWT_SECRET,
        timedelta(minutes=settings.INQUIRY_ACCESS_TTL_MINUTES),
    )
