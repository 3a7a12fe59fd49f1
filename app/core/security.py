import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt

from app.core.config import settings

OTP_LENGTH = 6
MAGIC_LINK_PURPOSE = "magic_link"
SESSION_PURPOSE = "session"


def generate_otp() -> str:
    """Uniformly random 6-digit code, leading zeros allowed."""
    return f"{secrets.randbelow(10 ** OTP_LENGTH):0{OTP_LENGTH}d}"


def _encode(claims: dict, expires_delta: timedelta) -> str:
    now = datetime.now(timezone.utc)
    payload = {**claims, "iat": now, "exp": now + expires_delta}
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.ALGORITHM)


def _decode(token: str, purpose: str) -> Optional[dict]:
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.ALGORITHM])
    except JWTError:
        return None
    if payload.get("purpose") != purpose:
        return None
    return payload


def create_session_token(email: str) -> str:
    return _encode(
        {"sub": email, "purpose": SESSION_PURPOSE},
        timedelta(days=settings.SESSION_EXPIRE_DAYS),
    )


def decode_session_token(token: str) -> Optional[str]:
    payload = _decode(token, SESSION_PURPOSE)
    return payload.get("sub") if payload else None


def create_continuation_token(email: str) -> str:
    """
    Signed token carrying the email a magic link was requested for. It rides
    along in the callback URL so verification needs no client-side storage.
    """
    return _encode(
        {"email": email, "purpose": MAGIC_LINK_PURPOSE},
        timedelta(minutes=settings.MAGIC_LINK_EXPIRE_MINUTES),
    )


def read_continuation_token(token: Optional[str]) -> Optional[str]:
    if not token:
        return None
    payload = _decode(token, MAGIC_LINK_PURPOSE)
    return payload.get("email") if payload else None
