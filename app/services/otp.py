from datetime import datetime, timedelta
from sqlalchemy.orm import Session
from typing import Optional
import enum
import logging

from app.core.config import settings
from app.core.security import generate_otp
from app.models.otp import OTP
from app.utils.dates import utcnow

logger = logging.getLogger(__name__)


class OTPStatus(enum.Enum):
    VALID = "valid"
    EXPIRED = "expired"
    NOT_FOUND = "not_found"


def generate_code() -> str:
    return generate_otp()


async def issue_otp(db: Session, email: str, now: Optional[datetime] = None) -> OTP:
    """
    Persist a fresh code for `email`. Earlier codes stay usable unless
    OTP_INVALIDATE_PREVIOUS is set.
    """
    now = now or utcnow()

    if settings.OTP_INVALIDATE_PREVIOUS:
        db.query(OTP).filter(OTP.email == email).delete(synchronize_session=False)

    otp = OTP(
        email=email,
        code=generate_code(),
        created_at=now,
        expires_at=now + timedelta(minutes=settings.OTP_EXPIRE_MINUTES),
    )
    db.add(otp)
    db.commit()
    db.refresh(otp)
    logger.info(f"Issued OTP {otp.id} for {email}")
    return otp


def _record_failed_attempt(db: Session, email: str) -> None:
    outstanding = db.query(OTP).filter(OTP.email == email).all()
    if not outstanding:
        return

    locked = 0
    for otp in outstanding:
        otp.attempts = (otp.attempts or 0) + 1
        if otp.attempts >= settings.OTP_MAX_ATTEMPTS:
            db.delete(otp)
            locked += 1
    db.commit()

    if locked:
        logger.warning(f"Invalidated {locked} OTP(s) for {email} after too many failed attempts")


async def verify_otp(db: Session, email: str, code: str, now: Optional[datetime] = None) -> OTPStatus:
    """
    Check `code` against the subject's outstanding codes. A wrong guess
    counts against every outstanding code; codes reaching
    OTP_MAX_ATTEMPTS are deleted.
    """
    otp = db.query(OTP).filter(OTP.email == email, OTP.code == code).first()

    if not otp:
        _record_failed_attempt(db, email)
        return OTPStatus.NOT_FOUND

    # Matched codes are single use, expired or not
    expired = otp.is_expired(now)
    db.delete(otp)
    db.commit()

    if expired:
        logger.info(f"OTP for {email} has expired")
        return OTPStatus.EXPIRED

    return OTPStatus.VALID
