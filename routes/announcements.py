import logging
from flask import Blueprint, jsonify, request

from models import db
from models.announcements import Announcement
from models.classes import Classroom
from sockets import push_to_class
from utils.helpers import sanitize_text
from utils.notifications import notify_class_students
from utils.utils import login_required, role_required, current_user, can_manage_class, can_view_class

logger = logging.getLogger(__name__)

announcement_bp = Blueprint("announcements", __name__)

PREVIEW_LENGTH = 50


def announcement_preview(classroom, message):
    preview = message[:PREVIEW_LENGTH]
    if len(message) > PREVIEW_LENGTH:
        preview += "..."
    return f'New announcement in {classroom.name}: "{preview}"'


@announcement_bp.route("/class/<int:class_id>", methods=["GET"])
@login_required
def list_announcements(class_id):
    classroom = db.session.get(Classroom, class_id)
    if not classroom:
        return jsonify({"error": "Class not found"}), 404
    if not can_view_class(classroom, current_user()):
        return jsonify({"error": "You are not a member of this class"}), 403

    announcements = (Announcement.query.filter_by(class_id=class_id)
                     .order_by(Announcement.created_at.desc(), Announcement.id.desc()).all())
    return jsonify({"announcements": [a.to_dict() for a in announcements]}), 200

@announcement_bp.route("", methods=["POST"])
@login_required
@role_required("Teacher", "Admin")
def create_announcement():
    data = request.get_json() or {}
    message = sanitize_text(data.get("message"))
    if not data.get("class_id") or not message:
        return jsonify({"error": "Class and message are required"}), 400

    user = current_user()
    classroom = db.session.get(Classroom, data.get("class_id"))
    if not classroom:
        return jsonify({"error": "Class not found"}), 404
    if not can_manage_class(classroom, user):
        return jsonify({"error": "You can only post announcements to your own classes"}), 403

    announcement = Announcement(class_id=classroom.id, teacher_id=user.id, message=message)
    db.session.add(announcement)
    db.session.commit()
    logger.info("Announcement %s posted to class %s", announcement.id, classroom.id)

    notify_class_students(classroom, user, "announcement", announcement_preview(classroom, message), announcement.id)
    push_to_class(classroom.id, "announcement-created", announcement.to_dict())

    return jsonify({"message": "Announcement posted", "announcement": announcement.to_dict()}), 201

@announcement_bp.route("/<int:announcement_id>", methods=["DELETE"])
@login_required
@role_required("Teacher", "Admin")
def delete_announcement(announcement_id):
    announcement = db.session.get(Announcement, announcement_id)
    if not announcement:
        return jsonify({"error": "Announcement not found"}), 404
    if not can_manage_class(announcement.classroom, current_user()):
        return jsonify({"error": "You do not have permission to delete this announcement"}), 403

    db.session.delete(announcement)
    db.session.commit()
    return jsonify({"message": "Announcement deleted"}), 200
