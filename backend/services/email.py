import html as html_lib
import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr

import settings
from models.auth import User

logger = logging.getLogger("campus.email")


def _smtp_configured() -> bool:
    return bool(
        settings.SMTP_HOST and settings.SMTP_USERNAME and settings.SMTP_PASSWORD
    )


def _send_email(subject: str, html: str, text: str, to_email: str) -> bool:
    if settings.TESTING_MODE or not _smtp_configured():
        # Skip sending in tests or when SMTP is not configured
        logger.info(
            f"[Email skipped] To={to_email} Subject={subject} TESTING_MODE={settings.TESTING_MODE} SMTP_CONFIGURED={_smtp_configured()}"
        )
        return False

    msg = MIMEMultipart("alternative")
    msg["Subject"] = subject
    msg["From"] = formataddr((settings.SMTP_FROM_NAME, settings.SMTP_FROM_EMAIL))
    msg["To"] = to_email
    msg.attach(MIMEText(text, "plain", "utf-8"))
    msg.attach(MIMEText(html, "html", "utf-8"))

    try:
        with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT, timeout=20) as server:
            if settings.SMTP_USE_TLS:
                server.starttls()
            server.login(settings.SMTP_USERNAME, settings.SMTP_PASSWORD)
            server.send_message(msg)
        logger.info(f"Email sent to {to_email}: {subject}")
        return True
    except Exception as e:  # pragma: no cover
        logger.error(f"Failed to send email to {to_email}: {e}")
        return False


def _action_email(
    user: User, subject: str, intro: str, label: str, url: str, outro: str
) -> bool:
    text = f"Hi {user.name},\n\n{intro}\n{url}\n\n{outro}\n"
    html = f"""
    <div style="font-family: Arial, Helvetica, sans-serif; max-width: 560px; margin: 0 auto;">
      <p>Hi {html_lib.escape(user.name)},</p>
      <p>{intro}</p>
      <p style="margin: 24px 0;">
        <a href="{url}" style="background: #4f46e5; color: #fff; padding: 10px 18px;
           border-radius: 6px; text-decoration: none;">{label}</a>
      </p>
      <p style="color: #6b7280; font-size: 13px;">{outro}</p>
    </div>
    """
    return _send_email(subject, html, text, user.email)


def send_verification_email(user: User, token: str) -> bool:
    return _action_email(
        user,
        subject=f"Verify Your Email - {settings.SMTP_FROM_NAME}",
        intro="Thanks for signing up! Please confirm your email address:",
        label="Verify email",
        url=f"{settings.BASE_URL}/verify-email?token={token}",
        outro="If you did not create an account you can ignore this email.",
    )


def send_password_reset_email(user: User, token: str) -> bool:
    return _action_email(
        user,
        subject=f"Reset Your Password - {settings.SMTP_FROM_NAME}",
        intro="We received a request to reset your password:",
        label="Reset password",
        url=f"{settings.BASE_URL}/reset-password?token={token}",
        outro="This link expires in one hour. If you did not ask for it, ignore this email.",
    )
