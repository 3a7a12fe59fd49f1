from supabase import create_client, Client
from supabase_auth.errors import AuthRetryableError
import httpx
import logging

from app.core.config import settings
from app.utils.errors import AuthError, AuthErrorKind

logger = logging.getLogger(__name__)

# Supabase Auth error codes -> error kinds. Anything unmapped falls back to
# the HTTP status, then to the caller's default.
_CODE_KINDS = {
    "invalid_credentials": AuthErrorKind.INVALID_CREDENTIALS,
    "user_not_found": AuthErrorKind.INVALID_CREDENTIALS,
    "email_not_confirmed": AuthErrorKind.INVALID_CREDENTIALS,
    "over_request_rate_limit": AuthErrorKind.RATE_LIMITED,
    "over_email_send_rate_limit": AuthErrorKind.RATE_LIMITED,
    "user_banned": AuthErrorKind.ACCOUNT_DISABLED,
    "email_address_invalid": AuthErrorKind.INVALID_EMAIL,
    "user_already_exists": AuthErrorKind.EMAIL_IN_USE,
    "email_exists": AuthErrorKind.EMAIL_IN_USE,
    "weak_password": AuthErrorKind.WEAK_PASSWORD,
    "otp_expired": AuthErrorKind.INVALID_LINK,
    "flow_state_expired": AuthErrorKind.INVALID_LINK,
    "bad_jwt": AuthErrorKind.NOT_AUTHENTICATED,
    "session_not_found": AuthErrorKind.NOT_AUTHENTICATED,
}

_STATUS_KINDS = {
    429: AuthErrorKind.RATE_LIMITED,
}


def classify_provider_error(exc: Exception, default: AuthErrorKind = AuthErrorKind.UNKNOWN) -> AuthErrorKind:
    if isinstance(exc, AuthError):
        return exc.kind
    if isinstance(exc, (httpx.TransportError, ConnectionError, TimeoutError, AuthRetryableError)):
        return AuthErrorKind.NETWORK
    code = getattr(exc, "code", None)
    if code in _CODE_KINDS:
        return _CODE_KINDS[code]
    status = getattr(exc, "status", None)
    if status in _STATUS_KINDS:
        return _STATUS_KINDS[status]
    return default


def provider_error(exc: Exception, default: AuthErrorKind = AuthErrorKind.UNKNOWN) -> AuthError:
    if isinstance(exc, AuthError):
        return exc
    kind = classify_provider_error(exc, default)
    return AuthError.of(kind, code=getattr(exc, "code", None))


def get_supabase_client() -> Client:
    return create_client(settings.SUPABASE_URL, settings.SUPABASE_KEY)

def get_supabase_admin_client() -> Client:
    """Client for `auth.admin` calls, which the anon key cannot make."""
    if not settings.SUPABASE_SERVICE_KEY:
        logger.warning("SUPABASE_SERVICE_KEY is not set; admin auth calls will be rejected")
    return create_client(settings.SUPABASE_URL, settings.SUPABASE_SERVICE_KEY or settings.SUPABASE_KEY)

async def create_supabase_user(email: str, password: str):
    client = get_supabase_client()
    return client.auth.sign_up({
        "email": email,
        "password": password
    })

async def authenticate_supabase_user(email: str, password: str):
    client = get_supabase_client()
    return client.auth.sign_in_with_password({
        "email": email,
        "password": password
    })

async def send_magic_link_supabase(email: str, redirect_to: str):
    client = get_supabase_client()
    return client.auth.sign_in_with_otp({
        "email": email,
        "options": {
            "email_redirect_to": redirect_to,
            "should_create_user": False
        }
    })

async def verify_magic_link_supabase(token_hash: str, link_type: str = "magiclink"):
    client = get_supabase_client()
    return client.auth.verify_otp({
        "token_hash": token_hash,
        "type": link_type
    })

async def sign_out_supabase_user(access_token: str):
    client = get_supabase_admin_client()
    return client.auth.admin.sign_out(access_token)

async def get_supabase_user(access_token: str):
    client = get_supabase_client()
    response = client.auth.get_user(access_token)
    return response.user if response else None

async def reset_password_supabase(email: str, redirect_to: str):
    client = get_supabase_client()
    return client.auth.reset_password_for_email(email, {"redirect_to": redirect_to})
