# marketplace/notifications/dispatcher.py
import logging
from typing import List

from ..extensions import db
from ..models.user import User
from ..services.email_service import send_email
from .templates import ALL_USERS, CUSTOMER, FREELANCER, USER, render

log = logging.getLogger(__name__)


def _email_of(part) -> List[str]:
    if isinstance(part, dict) and part.get("email"):
        return [part["email"]]
    return []


def recipients_for(audience: str, payload: dict) -> List[str]:
    if audience == ALL_USERS:
        return [email for (email,) in db.session.query(User.email).order_by(User.id).all() if email]
    if audience == CUSTOMER:
        return _email_of(payload.get("customer"))
    if audience == FREELANCER:
        return _email_of(payload.get("freelancer"))
    if audience == USER:
        return _email_of(payload)
    raise ValueError(f"Unknown audience: {audience}")


def dispatch(kind: str, payload: dict) -> int:
    """Send the notification for one event; returns how many emails went out."""
    subject, body, audience = render(kind, payload)
    recipients = recipients_for(audience, payload)
    if not recipients:
        log.warning("No recipient for %s event (id=%s)", kind, payload.get("id"))
        return 0

    sent = 0
    for to in recipients:
        if send_email(to=to, subject=subject, body=body):
            sent += 1
    log.info("Notification %s sent to %d/%d recipient(s)", kind, sent, len(recipients))
    return sent
