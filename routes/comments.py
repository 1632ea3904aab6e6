import logging
from flask import Blueprint, jsonify, request

from models import db
from models.announcements import Announcement
from models.assignment import Assignment
from models.comments import Comment, REFERENCE_TYPES
from models.materials import Material
from utils.helpers import get_pagination, sanitize_text
from utils.notifications import create_notification
from utils.utils import login_required, current_user, can_view_class

logger = logging.getLogger(__name__)

comment_bp = Blueprint("comments", __name__)

REFERENCE_MODELS = {
    "assignment": (Assignment, "created_by"),
    "announcement": (Announcement, "teacher"),
    "material": (Material, "teacher"),
}


def _resolve_reference(reference_type, reference_id):
    """Return (item, owner) for a commentable item, or (None, None)."""
    model, owner_attr = REFERENCE_MODELS[reference_type]
    item = db.session.get(model, reference_id)
    if not item:
        return None, None
    return item, getattr(item, owner_attr)

def _reference_args(source):
    reference_type = source.get("reference_type")
    try:
        reference_id = int(source.get("reference_id"))
    except (TypeError, ValueError):
        reference_id = None
    return reference_type, reference_id


@comment_bp.route("", methods=["GET"])
@login_required
def list_comments():
    reference_type, reference_id = _reference_args(request.args)
    if reference_type not in REFERENCE_TYPES or reference_id is None:
        return jsonify({"error": "reference_type and reference_id are required"}), 400

    item, _ = _resolve_reference(reference_type, reference_id)
    if not item:
        return jsonify({"error": f"{reference_type.capitalize()} not found"}), 404
    if not can_view_class(item.classroom, current_user()):
        return jsonify({"error": "You are not a member of this class"}), 403

    page, limit = get_pagination()
    query = Comment.query.filter_by(reference_type=reference_type, reference_id=reference_id)
    total = query.count()
    comments = (query.order_by(Comment.created_at.asc(), Comment.id.asc())
                .offset((page - 1) * limit).limit(limit).all())

    return jsonify({
        "comments": [c.to_dict() for c in comments],
        "page": page,
        "limit": limit,
        "total": total,
    }), 200

@comment_bp.route("", methods=["POST"])
@login_required
def create_comment():
    data = request.get_json() or {}
    reference_type, reference_id = _reference_args(data)
    content = sanitize_text(data.get("content"))

    if not content:
        return jsonify({"error": "Comment can't be empty"}), 400
    if reference_type not in REFERENCE_TYPES or reference_id is None:
        return jsonify({"error": "reference_type and reference_id are required"}), 400

    user = current_user()
    item, owner = _resolve_reference(reference_type, reference_id)
    if not item:
        return jsonify({"error": f"{reference_type.capitalize()} not found"}), 404
    if not can_view_class(item.classroom, user):
        return jsonify({"error": "You are not a member of this class"}), 403

    comment = Comment(
        content=content,
        author_id=user.id,
        author_role=user.role,
        reference_type=reference_type,
        reference_id=reference_id,
        class_id=item.class_id,
    )
    db.session.add(comment)
    db.session.commit()

    if owner is not None and owner.id != user.id:
        create_notification(owner, user, "comment",
                            f'{user.name} commented on your {reference_type}: "{content[:50]}"',
                            reference_id, item.class_id)

    return jsonify({"message": "Comment added", "comment": comment.to_dict()}), 201

@comment_bp.route("/<int:comment_id>", methods=["PUT"])
@login_required
def update_comment(comment_id):
    comment = db.session.get(Comment, comment_id)
    if not comment:
        return jsonify({"error": "Comment not found"}), 404
    if comment.author_id != current_user().id:
        return jsonify({"error": "You can only edit your own comments"}), 403

    content = sanitize_text((request.get_json() or {}).get("content"))
    if not content:
        return jsonify({"error": "Comment can't be empty"}), 400

    comment.content = content
    db.session.commit()
    return jsonify({"message": "Comment updated", "comment": comment.to_dict()}), 200

@comment_bp.route("/<int:comment_id>", methods=["DELETE"])
@login_required
def delete_comment(comment_id):
    comment = db.session.get(Comment, comment_id)
    if not comment:
        return jsonify({"error": "Comment not found"}), 404
    user = current_user()
    if comment.author_id != user.id and user.is_student:
        return jsonify({"error": "You can only delete your own comments"}), 403

    db.session.delete(comment)
    db.session.commit()
    return jsonify({"message": "Comment deleted"}), 200
