import logging

from django.conf import settings
from django.core.mail import send_mail

from .models import EmailLog

logger = logging.getLogger(__name__)


def send_email(to, subject, body, source, html=None, sent_by='', metadata=None):
    """
    Sends one email through Django's mail backend and records the outcome.
    Returns True when the backend accepted the message.
    """
    log = EmailLog(
        recipient=to,
        subject=subject,
        source=source,
        sent_by=sent_by or '',
        metadata=metadata or {},
    )
    try:
        send_mail(subject, body, settings.DEFAULT_FROM_EMAIL, [to], html_message=html)
    except Exception as e:
        logger.exception(f"Email to {to} ({source}) failed")
        log.status = EmailLog.Status.FAILED
        log.error = str(e)
        log.save()
        return False

    log.status = EmailLog.Status.SENT
    log.save()
    return True


def send_bulk_email(recipients, subject, body, source, sent_by=''):
    """Sends the same message to each recipient individually. Returns (sent, failed)."""
    sent = failed = 0
    for address in recipients:
        if send_email(address, subject, body, source, sent_by=sent_by):
            sent += 1
        else:
            failed += 1
    return sent, failed
