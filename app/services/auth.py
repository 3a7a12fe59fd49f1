from dataclasses import dataclass
from datetime import datetime, timedelta
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from typing import Any, Optional, Tuple
from email_validator import validate_email, EmailNotValidError
import enum
import httpx
import logging
import re

from app.core.config import settings
from app.core.security import create_continuation_token, read_continuation_token, create_session_token
from app.models.user import User, UserRole, LoginHistoryEntry, LoginStatus
from app.services.company import get_company_by_name
from app.services.otp import OTPStatus, issue_otp, verify_otp
from app.utils.dates import utcnow
from app.utils.email import send_otp_email
from app.utils.errors import AuthError, AuthErrorKind, IPRestrictionError
from app.utils.supabase import (
    provider_error,
    authenticate_supabase_user,
    create_supabase_user,
    send_magic_link_supabase,
    verify_magic_link_supabase,
    sign_out_supabase_user,
    get_supabase_user,
    reset_password_supabase,
)

logger = logging.getLogger(__name__)

MAGIC_LINK_TYPES = ("magiclink", "email")
OTP_FORMAT = re.compile(r"\d{6}")


class ProfilePolicy(enum.Enum):
    CREATE = "create"      # create a default employee profile when missing
    REQUIRE = "require"    # a missing profile rejects the attempt
    OPTIONAL = "optional"  # proceed without a profile


@dataclass(frozen=True)
class SignInPolicy:
    profile: ProfilePolicy
    enforce_ip: bool
    # Whether database failures while loading the profile abort the attempt
    tolerate_db_errors: bool


def password_policy() -> SignInPolicy:
    return SignInPolicy(
        profile=ProfilePolicy.CREATE if settings.PASSWORD_AUTO_CREATE_PROFILE else ProfilePolicy.REQUIRE,
        enforce_ip=settings.PASSWORD_ENFORCE_IP,
        tolerate_db_errors=True,
    )


def magic_link_policy() -> SignInPolicy:
    return SignInPolicy(
        profile=ProfilePolicy.CREATE if settings.MAGIC_LINK_AUTO_CREATE_PROFILE else ProfilePolicy.REQUIRE,
        enforce_ip=settings.MAGIC_LINK_ENFORCE_IP,
        tolerate_db_errors=False,
    )


def otp_policy() -> SignInPolicy:
    return SignInPolicy(
        profile=ProfilePolicy.REQUIRE if settings.OTP_REQUIRE_PROFILE else ProfilePolicy.OPTIONAL,
        enforce_ip=settings.OTP_ENFORCE_IP,
        tolerate_db_errors=True,
    )


def normalize_email(email: Optional[str]) -> str:
    if not email:
        raise AuthError.of(AuthErrorKind.INVALID_EMAIL)
    try:
        return validate_email(email.strip(), check_deliverability=False).normalized
    except EmailNotValidError:
        raise AuthError.of(AuthErrorKind.INVALID_EMAIL)


async def get_profile_by_email(db: Session, email: str) -> Optional[User]:
    return db.query(User).filter(func.lower(User.email) == email.lower()).first()


async def _load_profile(db: Session, user_id: Optional[str], email: str) -> Optional[User]:
    user = db.get(User, user_id) if user_id else None
    if not user:
        user = await get_profile_by_email(db, email)
    return user


def _create_default_profile(db: Session, user_id: Optional[str], email: str, name: Optional[str]) -> User:
    user = User(
        email=email,
        name=name or "User",
        company="",
        role=UserRole.EMPLOYEE.value,
        last_login_ip="",
        login_count_7_days=0,
    )
    if user_id:
        user.id = user_id
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info(f"Created default profile for {email}")
    return user


def _append_history(db: Session, user: User, ip_address: str, status: LoginStatus,
                    timestamp: datetime, reason: Optional[str] = None) -> LoginHistoryEntry:
    entry = LoginHistoryEntry(
        user_id=user.id,
        timestamp=timestamp,
        ip_address=ip_address,
        status=status.value,
        reason=reason,
    )
    db.add(entry)
    return entry


async def validate_ip_restrictions(db: Session, user: User, ip_address: str) -> None:
    """
    Reject employees whose company allow-list does not contain `ip_address`.

    Other role classes, unknown companies and empty allow-lists pass. A
    rejection is written to the user's login history before raising.
    """
    if user.role_class is not UserRole.EMPLOYEE:
        return

    try:
        company = await get_company_by_name(db, user.company)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error checking IP restrictions for {user.email}: {e}")
        return

    if not company:
        logger.warning(f"Company not found: {user.company}")
        return

    allowed_ips = company.allowed_ips or []
    if not allowed_ips or ip_address in allowed_ips:
        return

    error = IPRestrictionError(ip_address, allowed_ips)
    try:
        _append_history(db, user, ip_address, LoginStatus.FAILED, utcnow(), reason=error.message)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to log IP restriction violation for {user.email}: {e}")
    raise error


async def update_login_history(db: Session, user: User, ip_address: str, now: Optional[datetime] = None) -> None:
    """
    Record a successful sign-in and refresh the rolling 7-day counter.
    Failures are logged and absorbed.
    """
    now = now or utcnow()
    window_start = now - timedelta(days=settings.LOGIN_COUNT_WINDOW_DAYS)
    try:
        _append_history(db, user, ip_address, LoginStatus.SUCCESS, now)
        db.flush()
        recent = (
            db.query(func.count(LoginHistoryEntry.id))
            .filter(LoginHistoryEntry.user_id == user.id, LoginHistoryEntry.timestamp > window_start)
            .scalar()
        )
        user.last_login = now
        user.last_login_ip = ip_address
        user.login_count_7_days = recent
        db.commit()
        db.refresh(user)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error updating login history for {user.email}: {e}")


async def _revoke_provider_session(access_token: Optional[str]) -> None:
    if not access_token:
        return
    try:
        await sign_out_supabase_user(access_token)
    except Exception as e:
        logger.error(f"Failed to sign out rejected session: {e}")


async def _complete_sign_in(
    db: Session,
    policy: SignInPolicy,
    email: str,
    ip_address: str,
    user_id: Optional[str] = None,
    name: Optional[str] = None,
    access_token: Optional[str] = None,
) -> Optional[User]:
    """
    Shared tail of every entry point once the credential itself is accepted:
    resolve the profile, apply the IP policy and record the login.
    """
    try:
        user = await _load_profile(db, user_id, email)
        if not user:
            if policy.profile is ProfilePolicy.CREATE:
                user = _create_default_profile(db, user_id, email, name)
            elif policy.profile is ProfilePolicy.REQUIRE:
                await _revoke_provider_session(access_token)
                raise AuthError.of(AuthErrorKind.PROFILE_NOT_FOUND)
            else:
                return None
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error accessing user profile for {email}: {e}")
        if not policy.tolerate_db_errors:
            await _revoke_provider_session(access_token)
            raise AuthError("Unable to load user data. Please try again.", status=503)
        # Hand back an unsaved profile so the sign-in still completes
        return User(id=user_id, email=email, name=name or "User", role=UserRole.EMPLOYEE.value,
                    company="", last_login_ip=ip_address, login_count_7_days=0)

    if policy.enforce_ip:
        try:
            await validate_ip_restrictions(db, user, ip_address)
        except IPRestrictionError:
            logger.warning(f"IP restriction rejected {email} from {ip_address}")
            await _revoke_provider_session(access_token)
            raise

    await update_login_history(db, user, ip_address)
    return user


def _session_token(session: Any) -> Optional[str]:
    return getattr(session, "access_token", None) if session else None


async def sign_in_with_password(db: Session, email: str, password: str, ip_address: str) -> Tuple[User, Any]:
    try:
        response = await authenticate_supabase_user(email, password)
    except Exception as e:
        error = provider_error(e)
        logger.warning(f"Password sign-in failed for {email}: {error.kind.value}")
        raise error

    provider_user = response.user
    session = response.session
    metadata = getattr(provider_user, "user_metadata", None) or {}

    user = await _complete_sign_in(
        db,
        password_policy(),
        email=provider_user.email or email,
        ip_address=ip_address,
        user_id=provider_user.id,
        name=metadata.get("name"),
        access_token=_session_token(session),
    )
    return user, session


def build_magic_link_redirect(email: str) -> str:
    url = httpx.URL(settings.MAGIC_LINK_REDIRECT_URL)
    return str(url.copy_add_param("continue", create_continuation_token(email)))


async def send_magic_link(db: Session, email: str) -> None:
    email = normalize_email(email)

    try:
        user = await get_profile_by_email(db, email)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error looking up {email} for magic link: {e}")
        raise AuthError.of(AuthErrorKind.NETWORK)

    if not user:
        raise AuthError.of(
            AuthErrorKind.PROFILE_NOT_FOUND,
            "No account found with this email address. Please contact your administrator to create an account.",
        )

    try:
        await send_magic_link_supabase(user.email, build_magic_link_redirect(user.email))
    except Exception as e:
        error = provider_error(e)
        logger.error(f"Error sending magic link to {email}: {error.kind.value}")
        raise error

    logger.info(f"Magic link sent to {email}")


async def verify_magic_link(db: Session, callback_url: str, ip_address: str) -> Tuple[User, Any]:
    url = httpx.URL(callback_url)
    token_hash = url.params.get("token_hash")
    link_type = url.params.get("type")
    if not token_hash or link_type not in MAGIC_LINK_TYPES:
        raise AuthError.of(AuthErrorKind.INVALID_LINK)

    email = read_continuation_token(url.params.get("continue"))
    if not email:
        raise AuthError.of(AuthErrorKind.PENDING_EMAIL_MISSING)

    try:
        response = await verify_magic_link_supabase(token_hash, link_type)
    except Exception as e:
        raise provider_error(e, AuthErrorKind.INVALID_LINK)

    provider_user = response.user
    session = response.session
    if not provider_user or (provider_user.email or "").lower() != email.lower():
        await _revoke_provider_session(_session_token(session))
        raise AuthError.of(AuthErrorKind.INVALID_LINK)

    user = await _complete_sign_in(
        db,
        magic_link_policy(),
        email=provider_user.email,
        ip_address=ip_address,
        user_id=provider_user.id,
        access_token=_session_token(session),
    )
    logger.info(f"Magic link verified for {email}")
    return user, session


async def send_login_code(db: Session, email: str) -> None:
    """Issue an OTP for `email` and mail it. Raises DeliveryFailed on send failure."""
    email = normalize_email(email)
    otp = await issue_otp(db, email)
    await send_otp_email(email, otp.code)


async def sign_in_with_otp(db: Session, email: str, code: str, ip_address: str) -> Tuple[Optional[User], str]:
    email = normalize_email(email)
    if not code or not OTP_FORMAT.fullmatch(code):
        raise AuthError.of(AuthErrorKind.MALFORMED_OTP)

    status = await verify_otp(db, email, code)
    if status is not OTPStatus.VALID:
        logger.info(f"OTP sign-in rejected for {email}: {status.value}")
        raise AuthError.of(AuthErrorKind.INVALID_OTP)

    user = await _complete_sign_in(db, otp_policy(), email=email, ip_address=ip_address)
    return user, create_session_token(email)


async def sign_out(access_token: str, user: Optional[User]) -> bool:
    """
    End the provider session. Returns True when the client should reload,
    which is every role class except Admin.
    """
    try:
        await sign_out_supabase_user(access_token)
    except Exception as e:
        error = provider_error(e)
        logger.error(f"Sign out error: {error.kind.value}")
        raise error

    return user is None or user.role_class is not UserRole.ADMIN


async def create_account(email: str, password: str) -> Any:
    try:
        response = await create_supabase_user(email, password)
    except Exception as e:
        error = provider_error(e)
        logger.warning(f"Account creation failed for {email}: {error.kind.value}")
        raise error
    return response.user


async def send_password_reset(email: str) -> None:
    try:
        await reset_password_supabase(email, settings.PASSWORD_RESET_REDIRECT_URL)
    except Exception as e:
        error = provider_error(e)
        logger.error(f"Error sending password reset email to {email}: {error.kind.value}")
        raise error


async def get_current_profile(db: Session, token: Optional[str]) -> User:
    if not token:
        raise AuthError.of(AuthErrorKind.NOT_AUTHENTICATED)

    try:
        provider_user = await get_supabase_user(token)
    except Exception as e:
        raise provider_error(e, AuthErrorKind.NOT_AUTHENTICATED)

    if not provider_user:
        raise AuthError.of(AuthErrorKind.NOT_AUTHENTICATED)

    user = await _load_profile(db, provider_user.id, provider_user.email or "")
    if not user:
        raise AuthError.of(AuthErrorKind.PROFILE_NOT_FOUND)
    return user
