import asyncio
import logging
import smtplib
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from email.utils import formataddr

import httpx
from fastapi.concurrency import run_in_threadpool

from app.core.config import settings
from app.utils.errors import DeliveryFailed

logger = logging.getLogger(__name__)


def _send_smtp(to_email: str, subject: str, html_content: str, text_content: str) -> None:
    message = MIMEMultipart("alternative")
    message["From"] = formataddr((settings.EMAIL_FROM_NAME, settings.EMAIL_FROM))
    message["To"] = to_email
    message["Subject"] = subject

    message.attach(MIMEText(text_content, "plain"))
    message.attach(MIMEText(html_content, "html"))

    with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT) as server:
        if settings.SMTP_USE_TLS:
            server.starttls()
        if settings.SMTP_USERNAME:
            server.login(settings.SMTP_USERNAME, settings.SMTP_PASSWORD)
        server.sendmail(settings.EMAIL_FROM, to_email, message.as_string())


def _http_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(timeout=10.0)


async def _send_http(to_email: str, subject: str, html_content: str, text_content: str) -> None:
    headers = {"Content-Type": "application/json"}
    if settings.EMAIL_API_TOKEN:
        headers["Authorization"] = f"Bearer {settings.EMAIL_API_TOKEN}"
    async with _http_client() as client:
        response = await client.post(
            settings.EMAIL_API_URL,
            json={
                "email": to_email,
                "subject": subject,
                "text": text_content,
                "html": html_content,
                "category": "EmailWithText",
            },
            headers=headers,
        )
        response.raise_for_status()


async def _deliver(to_email: str, subject: str, html_content: str, text_content: str) -> None:
    if settings.EMAIL_TRANSPORT == "http":
        await _send_http(to_email, subject, html_content, text_content)
    else:
        await run_in_threadpool(_send_smtp, to_email, subject, html_content, text_content)


async def send_email(to_email: str, subject: str, html_content: str, text_content: str = "") -> None:
    """
    Send an email, retrying transport failures with a fixed delay.

    Raises DeliveryFailed once every attempt has failed.
    """
    attempts = max(1, settings.EMAIL_MAX_RETRIES)
    last_error = None
    for attempt in range(1, attempts + 1):
        try:
            await _deliver(to_email, subject, html_content, text_content)
            logger.info(f"Email sent to {to_email} on attempt {attempt}")
            return
        except (smtplib.SMTPException, httpx.HTTPError, OSError) as e:
            last_error = e
            logger.warning(f"Failed to send email to {to_email} on attempt {attempt}: {e}")
            if attempt < attempts:
                await asyncio.sleep(settings.EMAIL_RETRY_DELAY_SECONDS)

    raise DeliveryFailed("Failed to send OTP email", details=str(last_error))


def render_otp_email(otp: str):
    minutes = settings.OTP_EXPIRE_MINUTES
    subject = "Your Login OTP Code - Solution 360"
    text_content = f"Your OTP code is: {otp}. It expires in {minutes} minutes."
    html_content = f"""
    <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
        <h2>Solution 360 - Your Login OTP Code</h2>
        <p>Please use the following OTP code to complete your login:</p>
        <h1 style="font-size: 32px; letter-spacing: 5px; color: #4a90e2; text-align: center; padding: 20px; background: #f5f5f5; border-radius: 5px;">{otp}</h1>
        <p>This OTP will expire in {minutes} minutes.</p>
        <p>If you didn't request this OTP, please ignore this email.</p>
    </div>
    """
    return subject, html_content, text_content


async def send_otp_email(email: str, otp: str) -> None:
    subject, html_content, text_content = render_otp_email(otp)
    await send_email(email, subject, html_content, text_content)
