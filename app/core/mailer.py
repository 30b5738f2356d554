"""
Email delivery for one-time passwords.

Plain SMTP with STARTTLS. When no sender credentials are configured the
message is not sent and the call returns False, so local development works
without a mail server.
"""

import smtplib
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from app.core.config import settings
from app.core.logger import logger

OTP_SUBJECTS = {
    "verify": "Verify your email address",
    "reset": "Your password reset code",
}


def build_otp_message(email: str, otp: str, purpose: str) -> MIMEMultipart:
    subject = OTP_SUBJECTS.get(purpose, OTP_SUBJECTS["verify"])
    body = f"""Hello,

Your one-time code is: {otp}

It expires in {settings.OTP_EXPIRE_MINUTES} minutes. If you did not request it, ignore this email.

-- {settings.PROJECT_NAME}
"""
    msg = MIMEMultipart()
    msg["From"] = settings.SENDER_EMAIL
    msg["To"] = email
    msg["Subject"] = subject
    msg.attach(MIMEText(body, "plain"))
    return msg


def send_otp_email(email: str, otp: str, purpose: str = "verify") -> bool:
    if not settings.SENDER_EMAIL or not settings.SENDER_PASSWORD:
        logger.error("[Mailer] Email credentials not configured. Set SENDER_EMAIL and SENDER_PASSWORD.")
        return False

    msg = build_otp_message(email, otp, purpose)
    try:
        with smtplib.SMTP(settings.SMTP_SERVER, settings.SMTP_PORT, timeout=10) as server:
            server.starttls()
            server.login(settings.SENDER_EMAIL, settings.SENDER_PASSWORD)
            server.send_message(msg)
    except (smtplib.SMTPException, OSError) as e:
        logger.error(f"[Mailer] Failed to send {purpose} OTP to {email}: {e}")
        return False

    logger.info(f"[Mailer] {purpose} OTP sent to {email}")
    return True
