from fastapi import APIRouter, Depends, Request
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session
from typing import Any, Optional

from app.core.config import settings
from app.db.base import get_db
from app.models.user import User
from app.schemas.user import (
    UserCreate, UserLogin, UserResponse, MagicLinkRequest, PasswordResetRequest,
    SessionResponse, LogoutResponse, MessageResponse,
)
from app.services.auth import (
    sign_in_with_password, send_magic_link, verify_magic_link, sign_out,
    create_account, send_password_reset, get_current_profile,
)
from app.utils.network import get_client_ip

router = APIRouter(prefix="/auth", tags=["auth"])

oauth2_scheme = OAuth2PasswordBearer(tokenUrl=f"{settings.API_V1_STR}/auth/login", auto_error=False)


async def get_current_user(token: Optional[str] = Depends(oauth2_scheme), db: Session = Depends(get_db)) -> User:
    return await get_current_profile(db, token)


def _session_response(user: User, session: Any) -> dict:
    return {
        "access_token": session.access_token,
        "refresh_token": getattr(session, "refresh_token", None),
        "token_type": "bearer",
        "user": user,
    }


@router.post("/login", response_model=SessionResponse)
async def login(credentials: UserLogin, request: Request, db: Session = Depends(get_db)) -> Any:
    user, session = await sign_in_with_password(
        db, credentials.email, credentials.password, get_client_ip(request)
    )
    return _session_response(user, session)

@router.post("/signup", response_model=MessageResponse, status_code=201)
async def signup(user_data: UserCreate) -> Any:
    await create_account(user_data.email, user_data.password)
    return {"message": "Account created. Check your inbox to confirm your email."}

@router.post("/magic-link", response_model=MessageResponse)
async def request_magic_link(payload: MagicLinkRequest, db: Session = Depends(get_db)) -> Any:
    await send_magic_link(db, payload.email)
    return {"message": "Magic link sent. Check your inbox."}

@router.get("/magic-link/verify", response_model=SessionResponse)
async def confirm_magic_link(request: Request, db: Session = Depends(get_db)) -> Any:
    """
    Callback target for the emailed link. Expects the provider's
    `token_hash` and `type` parameters plus the `continue` token added
    when the link was requested.
    """
    user, session = await verify_magic_link(db, str(request.url), get_client_ip(request))
    return _session_response(user, session)

@router.post("/logout", response_model=LogoutResponse)
async def logout(
    token: Optional[str] = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> Any:
    user = await get_current_profile(db, token)
    reload_required = await sign_out(token, user)
    return {"detail": "Successfully logged out", "reload_required": reload_required}

@router.post("/password/reset", response_model=MessageResponse)
async def reset_password(payload: PasswordResetRequest) -> Any:
    await send_password_reset(payload.email)
    return {"message": "Password reset email sent"}

@router.get("/me", response_model=UserResponse)
async def read_users_me(current_user: User = Depends(get_current_user)) -> Any:
    return current_user
