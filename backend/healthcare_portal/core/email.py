"""
Outgoing e-mail for OTP codes.

Delivery is fire-and-forget: ``dispatch_otp_email`` schedules the SMTP
conversation on a worker thread and returns immediately. Failures are logged
and never reach the caller.
"""
import asyncio
import logging
import smtplib
from email.message import EmailMessage
from typing import Set

from healthcare_portal.config.constants import OtpType
from healthcare_portal.config.settings import settings

logger = logging.getLogger(__name__)

# Strong references so pending sends aren't garbage collected mid-flight
_pending_sends: Set[asyncio.Task] = set()

SUBJECTS = {
    OtpType.SIGNUP: "Verify Your Email - {app_name}",
    OtpType.FORGOT_PASSWORD: "Password Reset - {app_name}",
}


def build_otp_message(to: str, code: str, otp_type: OtpType) -> EmailMessage:
    app_name = settings.app_name
    purpose = "verify your email address" if otp_type == OtpType.SIGNUP else "reset your password"

    message = EmailMessage()
    message["From"] = settings.mail_from
    message["To"] = to
    message["Subject"] = SUBJECTS[otp_type].format(app_name=app_name)
    message.set_content(
        f"Use the code {code} to {purpose}.\n"
        f"The code expires in {settings.otp_expiry_minutes} minutes.\n\n"
        f"- {app_name}"
    )
    message.add_alternative(
        f"<p>Use the code <strong>{code}</strong> to {purpose}.</p>"
        f"<p>The code expires in {settings.otp_expiry_minutes} minutes.</p>"
        f"<p>{app_name}</p>",
        subtype="html",
    )
    return message


def send_email(message: EmailMessage) -> None:
    """Blocking SMTP send. Run off the event loop."""
    with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=30) as smtp:
        if settings.smtp_use_tls:
            smtp.starttls()
        if settings.smtp_username:
            smtp.login(settings.smtp_username, settings.smtp_password or "")
        smtp.send_message(message)


async def _deliver(to: str, code: str, otp_type: OtpType) -> None:
    try:
        await asyncio.to_thread(send_email, build_otp_message(to, code, otp_type))
        logger.info(f"{otp_type.value} OTP email sent to {to}")
    except Exception as e:
        logger.error(f"Email sending failed for {to}: {e}", exc_info=True)


def dispatch_otp_email(to: str, code: str, otp_type: OtpType) -> None:
    if not settings.mail_enabled:
        logger.info(f"Mail disabled; skipping {otp_type.value} OTP email to {to}")
        return

    task = asyncio.get_running_loop().create_task(_deliver(to, code, otp_type))
    _pending_sends.add(task)
    task.add_done_callback(_pending_sends.discard)
