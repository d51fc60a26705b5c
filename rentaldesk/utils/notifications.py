import logging

from flask import current_app
from flask_mail import Message

logger = logging.getLogger(__name__)


def send_email(to_email: str, subject: str, body: str):
    """
    Send email using Flask-Mail configuration.
    Returns False (and logs the message) when mail is not configured or sending fails.
    """
    if not to_email:
        logger.warning("Email '%s' skipped: no recipient", subject)
        return False

    mail = current_app.extensions.get('mail')
    if mail is None or not current_app.config.get('MAIL_SERVER'):
        logger.info("[EMAIL - NOT CONFIGURED] To: %s | Subject: %s | Body: %s", to_email, subject, body[:120])
        return False

    msg = Message(
        subject=subject,
        recipients=[to_email],
        body=body,
        sender=current_app.config.get('MAIL_DEFAULT_SENDER'),
    )
    try:
        mail.send(msg)
    except OSError as e:
        logger.error("[EMAIL - ERROR] Failed to send to %s: %s", to_email, e)
        return False
    logger.info("[EMAIL - SENT] To: %s | Subject: %s", to_email, subject)
    return True
