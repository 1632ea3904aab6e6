import logging

from sqlalchemy.exc import SQLAlchemyError

from models import db
from models.notifications import Notification, NOTIFICATION_TYPES
from sockets import push_to_user

logger = logging.getLogger(__name__)


def _build(recipient, sender, notification_type, message, reference_id, class_id):
    if notification_type not in NOTIFICATION_TYPES:
        raise ValueError(f"Unknown notification type '{notification_type}'")
    return Notification(
        recipient_id=recipient.id,
        sender_id=sender.id if sender else None,
        type=notification_type,
        message=message,
        reference_id=str(reference_id) if reference_id is not None else None,
        class_id=class_id,
    )

def create_notification(recipient, sender, notification_type, message, reference_id=None, class_id=None):
    """Persist a notification, then push it to the recipient's room."""
    return next(iter(notify_users([recipient], sender, notification_type, message, reference_id, class_id)), None)

def notify_users(recipients, sender, notification_type, message, reference_id=None, class_id=None):
    """Persist one notification per recipient in a single commit, then push each.

    The sender never notifies themselves. Storage failures are logged and
    leave the caller's already-committed work alone.
    """
    seen = set()
    targets = []
    for recipient in recipients:
        if recipient is None or recipient.id in seen:
            continue
        if sender is not None and recipient.id == sender.id:
            continue
        seen.add(recipient.id)
        targets.append(recipient)
    if not targets:
        return []

    notifications = [
        _build(r, sender, notification_type, message, reference_id, class_id) for r in targets
    ]
    try:
        db.session.add_all(notifications)
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("Failed to store %s notifications", notification_type)
        return []

    for recipient, notification in zip(targets, notifications):
        push_to_user(recipient.username, "new-notification", notification.to_dict())
    logger.info("Sent %d %s notification(s)", len(notifications), notification_type)
    return notifications

def notify_class_students(classroom, sender, notification_type, message, reference_id=None):
    return notify_users(classroom.students, sender, notification_type, message, reference_id, classroom.id)
