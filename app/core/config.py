import os
from pydantic_settings import BaseSettings
from dotenv import load_dotenv
from typing import List

load_dotenv()

DEFAULT_CORS_ORIGINS = ["https://solution360.vercel.app", "http://localhost:3000"]


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


class Settings(BaseSettings):
    API_V1_STR: str = "/api/v1"
    PROJECT_NAME: str = "solution360"
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")

    ALGORITHM: str = os.getenv("ALGORITHM", "HS256")
    JWT_SECRET: str = os.getenv("JWT_SECRET", "your-secret-key")
    SESSION_EXPIRE_DAYS: int = int(os.getenv("SESSION_EXPIRE_DAYS", "7"))
    SESSION_COOKIE_NAME: str = "session"

    OTP_EXPIRE_MINUTES: int = int(os.getenv("OTP_EXPIRE_MINUTES", "5"))
    # When enabled, issuing a code deletes the subject's outstanding codes
    OTP_INVALIDATE_PREVIOUS: bool = _flag("OTP_INVALIDATE_PREVIOUS", "false")
    OTP_MAX_ATTEMPTS: int = int(os.getenv("OTP_MAX_ATTEMPTS", "3"))

    # "smtp" or "http"
    EMAIL_TRANSPORT: str = os.getenv("EMAIL_TRANSPORT", "smtp")
    SMTP_HOST: str = os.getenv("SMTP_HOST", "")
    SMTP_PORT: int = int(os.getenv("SMTP_PORT", "587"))
    SMTP_USERNAME: str = os.getenv("SMTP_USERNAME", "")
    SMTP_PASSWORD: str = os.getenv("SMTP_PASSWORD", "")
    SMTP_USE_TLS: bool = _flag("SMTP_USE_TLS", "true")
    EMAIL_FROM: str = os.getenv("EMAIL_FROM", "")
    EMAIL_FROM_NAME: str = os.getenv("EMAIL_FROM_NAME", "Solution 360")
    EMAIL_API_URL: str = os.getenv("EMAIL_API_URL", "")
    EMAIL_API_TOKEN: str = os.getenv("EMAIL_API_TOKEN", "")
    EMAIL_MAX_RETRIES: int = int(os.getenv("EMAIL_MAX_RETRIES", "3"))
    EMAIL_RETRY_DELAY_SECONDS: float = float(os.getenv("EMAIL_RETRY_DELAY_SECONDS", "2"))

    SUPABASE_URL: str = os.getenv("SUPABASE_URL", "")
    SUPABASE_KEY: str = os.getenv("SUPABASE_KEY", "")
    # Service-role key; admin calls such as signing out another session need it
    SUPABASE_SERVICE_KEY: str = os.getenv("SUPABASE_SERVICE_KEY", "")

    # Peers allowed to set X-Forwarded-For (comma-separated IPs, networks or "*")
    FORWARDED_ALLOW_IPS: str = os.getenv("FORWARDED_ALLOW_IPS", "127.0.0.1")

    MAGIC_LINK_REDIRECT_URL: str = os.getenv(
        "MAGIC_LINK_REDIRECT_URL", "http://localhost:3000/verify-email"
    )
    MAGIC_LINK_EXPIRE_MINUTES: int = int(os.getenv("MAGIC_LINK_EXPIRE_MINUTES", "60"))
    PASSWORD_RESET_REDIRECT_URL: str = os.getenv(
        "PASSWORD_RESET_REDIRECT_URL", "http://localhost:3000/reset-password"
    )

    # Sign-in policies, one pair per entry point
    PASSWORD_AUTO_CREATE_PROFILE: bool = _flag("PASSWORD_AUTO_CREATE_PROFILE", "true")
    PASSWORD_ENFORCE_IP: bool = _flag("PASSWORD_ENFORCE_IP", "true")
    MAGIC_LINK_AUTO_CREATE_PROFILE: bool = _flag("MAGIC_LINK_AUTO_CREATE_PROFILE", "false")
    MAGIC_LINK_ENFORCE_IP: bool = _flag("MAGIC_LINK_ENFORCE_IP", "false")
    OTP_REQUIRE_PROFILE: bool = _flag("OTP_REQUIRE_PROFILE", "false")
    OTP_ENFORCE_IP: bool = _flag("OTP_ENFORCE_IP", "false")

    LOGIN_COUNT_WINDOW_DAYS: int = 7
    MAX_ALLOWED_IPS: int = 3

    class Config:
        case_sensitive = True

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"


def get_cors_origins() -> List[str]:
    """
    Get the CORS origins from environment or use defaults
    """
    cors_origins_env = os.getenv("CORS_ORIGINS", "")
    if cors_origins_env:
        # Handle comma-separated list from environment variable
        origins = [origin.strip() for origin in cors_origins_env.split(",") if origin.strip()]
        if origins:
            return origins

    return DEFAULT_CORS_ORIGINS

settings = Settings()
