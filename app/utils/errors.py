import enum
from typing import Optional


class AuthErrorKind(str, enum.Enum):
    INVALID_CREDENTIALS = "invalid_credentials"
    RATE_LIMITED = "rate_limited"
    ACCOUNT_DISABLED = "account_disabled"
    NETWORK = "network"
    INVALID_EMAIL = "invalid_email"
    EMAIL_IN_USE = "email_in_use"
    WEAK_PASSWORD = "weak_password"
    INVALID_LINK = "invalid_link"
    ACCESS_DENIED = "access_denied"
    PROFILE_NOT_FOUND = "profile_not_found"
    PENDING_EMAIL_MISSING = "pending_email_missing"
    INVALID_OTP = "invalid_otp"
    MALFORMED_OTP = "malformed_otp"
    NOT_AUTHENTICATED = "not_authenticated"
    DELIVERY_FAILED = "delivery_failed"
    UNKNOWN = "unknown"


# User-facing text and HTTP status for each kind
ERROR_MESSAGES = {
    AuthErrorKind.INVALID_CREDENTIALS: ("Invalid email or password.", 401),
    AuthErrorKind.RATE_LIMITED: ("Too many sign-in attempts. Please try again later.", 429),
    AuthErrorKind.ACCOUNT_DISABLED: ("This account has been disabled. Contact your administrator.", 403),
    AuthErrorKind.NETWORK: ("Connection problem. Check your connection and try again.", 503),
    AuthErrorKind.INVALID_EMAIL: ("Invalid email address.", 400),
    AuthErrorKind.EMAIL_IN_USE: ("This email address is already in use.", 409),
    AuthErrorKind.WEAK_PASSWORD: ("The password is too weak. Use at least 6 characters.", 400),
    AuthErrorKind.INVALID_LINK: ("Invalid or expired magic link.", 400),
    AuthErrorKind.ACCESS_DENIED: ("Access denied.", 403),
    AuthErrorKind.PROFILE_NOT_FOUND: ("User data not found. Please contact your administrator.", 404),
    AuthErrorKind.PENDING_EMAIL_MISSING: ("Email not found. Please request a new magic link.", 400),
    AuthErrorKind.INVALID_OTP: ("Invalid or expired OTP", 400),
    AuthErrorKind.MALFORMED_OTP: ("Invalid OTP format", 400),
    AuthErrorKind.NOT_AUTHENTICATED: ("Not authenticated", 401),
    AuthErrorKind.DELIVERY_FAILED: ("Failed to send email", 500),
    AuthErrorKind.UNKNOWN: ("Authentication error", 400),
}


class AuthError(Exception):
    """
    Authentication error carrying a structured kind alongside the
    human-readable message. `code` keeps the provider's own code when known.
    """
    def __init__(self, message=None, code=None, status=None, kind=AuthErrorKind.UNKNOWN):
        default_message, default_status = ERROR_MESSAGES[kind]
        self.kind = kind
        self.message = message or default_message
        self.code = code
        self.status = status or default_status
        super().__init__(self.message)

    @classmethod
    def of(cls, kind: AuthErrorKind, message: Optional[str] = None, code: Optional[str] = None):
        return cls(message=message, code=code, kind=kind)


class IPRestrictionError(AuthError):
    def __init__(self, ip_address: str, allowed_ips):
        self.ip_address = ip_address
        self.allowed_ips = list(allowed_ips)
        message = (
            f"Access denied: your IP ({ip_address}) is not allowed for this company. "
            f"Allowed IPs are: {', '.join(self.allowed_ips)}."
        )
        super().__init__(message=message, kind=AuthErrorKind.ACCESS_DENIED)


class DeliveryFailed(AuthError):
    def __init__(self, message="Failed to send email", details=None):
        self.details = details
        super().__init__(message=message, kind=AuthErrorKind.DELIVERY_FAILED)
