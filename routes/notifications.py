import logging
from flask import Blueprint, jsonify, request

from models import db
from models.notifications import Notification
from utils.helpers import get_pagination, str_to_bool
from utils.utils import login_required, current_user

logger = logging.getLogger(__name__)

notification_bp = Blueprint("notifications", __name__)


def _owned(notification_id):
    """Load a notification and check it belongs to the caller. Returns (notification, error)."""
    notification = db.session.get(Notification, notification_id)
    if not notification:
        return None, (jsonify({"error": "Notification not found"}), 404)
    if notification.recipient_id != current_user().id:
        logger.warning("%s tried to touch notification %s", current_user().username, notification_id)
        return None, (jsonify({"error": "Not authorized"}), 403)
    return notification, None


@notification_bp.route("", methods=["GET"])
@login_required
def list_notifications():
    user = current_user()
    page, limit = get_pagination(default_limit=20)
    unread_only = str_to_bool(request.args.get("unread_only", False))

    query = Notification.query.filter_by(recipient_id=user.id)
    if unread_only:
        query = query.filter_by(read=False)
    total = query.count()
    notifications = (query.order_by(Notification.created_at.desc(), Notification.id.desc())
                     .offset((page - 1) * limit).limit(limit).all())
    unread_count = Notification.query.filter_by(recipient_id=user.id, read=False).count()

    return jsonify({
        "notifications": [n.to_dict() for n in notifications],
        "unread_count": unread_count,
        "page": page,
        "limit": limit,
        "total": total,
    }), 200

@notification_bp.route("/<int:notification_id>/read", methods=["PUT"])
@login_required
def mark_read(notification_id):
    notification, error = _owned(notification_id)
    if error:
        return error
    notification.read = True
    db.session.commit()
    return jsonify({"message": "Notification marked as read", "notification": notification.to_dict()}), 200

@notification_bp.route("/read-all", methods=["PUT"])
@login_required
def mark_all_read():
    updated = (Notification.query.filter_by(recipient_id=current_user().id, read=False)
               .update({"read": True}, synchronize_session=False))
    db.session.commit()
    return jsonify({"message": "All notifications marked as read", "updated": updated}), 200

@notification_bp.route("/<int:notification_id>", methods=["DELETE"])
@login_required
def delete_notification(notification_id):
    notification, error = _owned(notification_id)
    if error:
        return error
    db.session.delete(notification)
    db.session.commit()
    return jsonify({"message": "Notification deleted"}), 200
