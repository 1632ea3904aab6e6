import logging

from flask import current_app
from flask_mail import Message

from extensions import mail

logger = logging.getLogger(__name__)


def send_email(to, subject, body):
    """Sends an email using Flask-Mail."""
    msg = Message(subject=subject, recipients=[to], body=body)
    try:
        mail.send(msg)
        return True
    except Exception:
        logger.exception("Failed to send email to %s", to)
        return False

def send_otp_email(user, otp):
    minutes = current_app.config.get("OTP_EXPIRY_MINUTES", 10)
    body = (
        f"Hi {user.name},\n\n"
        f"Your password reset code is {otp}. It expires in {minutes} minutes.\n\n"
        "If you did not ask to reset your password you can ignore this email."
    )
    return send_email(user.email, "Your password reset code", body)
