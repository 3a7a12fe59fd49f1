from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from typing import Any
import logging

from app.core.config import settings
from app.db.base import get_db
from app.schemas.otp import SendOTPRequest, VerifyOTPRequest
from app.services.auth import send_login_code, sign_in_with_otp
from app.utils.errors import AuthError, AuthErrorKind, DeliveryFailed
from app.utils.network import get_client_ip

logger = logging.getLogger(__name__)

router = APIRouter(tags=["otp"])


def _failure(status_code: int, error: str, details: str = None) -> JSONResponse:
    content = {"success": False, "error": error}
    if details:
        content["details"] = details
    return JSONResponse(status_code=status_code, content=content)


@router.post("/send-otp")
async def send_otp(payload: SendOTPRequest, db: Session = Depends(get_db)) -> Any:
    if not payload.email:
        return _failure(status.HTTP_400_BAD_REQUEST, "Email is required")
    if payload.otp:
        logger.warning("Ignoring client-supplied OTP in send-otp request")

    try:
        await send_login_code(db, payload.email)
    except DeliveryFailed as e:
        logger.error(f"Error in send-otp route: {e.details}")
        return _failure(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to send OTP email", e.details)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error storing OTP: {e}")
        return _failure(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to send OTP", str(e))
    except AuthError as e:
        if e.kind is AuthErrorKind.INVALID_EMAIL:
            return _failure(status.HTTP_400_BAD_REQUEST, e.message)
        raise

    return {"success": True, "message": "OTP sent successfully"}


@router.post("/verify-otp")
async def verify_otp_code(payload: VerifyOTPRequest, request: Request, db: Session = Depends(get_db)) -> Any:
    if not payload.email or not payload.otp:
        return _failure(status.HTTP_400_BAD_REQUEST, "Email and OTP are required")

    try:
        _, token = await sign_in_with_otp(db, payload.email, payload.otp, get_client_ip(request))
    except AuthError as e:
        if e.kind in (AuthErrorKind.INVALID_OTP, AuthErrorKind.MALFORMED_OTP, AuthErrorKind.INVALID_EMAIL):
            return _failure(status.HTTP_400_BAD_REQUEST, e.message)
        raise
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error in verify-otp route: {e}")
        return _failure(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to verify OTP", str(e))

    response = JSONResponse(content={"success": True, "message": "OTP verified successfully"})
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=token,
        httponly=True,
        secure=settings.is_production,
        samesite="strict",
        max_age=settings.SESSION_EXPIRE_DAYS * 24 * 60 * 60,
    )
    return response
