import csv
import logging
from flask import Blueprint, request, jsonify

from models import db
from models.users import User, ROLES
from models.classes import Classroom
from classes.validators import validate_email, validate_password, validate_role
from utils.utils import login_required, role_required, current_user

logger = logging.getLogger(__name__)

admin_bp = Blueprint('admin', __name__)

IMPORT_COLUMNS = ("name", "username", "email", "role", "password")


def _new_user(name, username, email, role, password):
    """Validate and stage a user. Returns (user, error_message)."""
    if not name or not username or not password:
        return None, "Name, username and password are required"
    try:
        validate_role(role, ROLES)
        validate_email(email)
        validate_password(password)
    except ValueError as e:
        return None, str(e)
    if User.query.filter_by(username=username).first():
        return None, f"Username '{username}' already taken"
    if email and User.query.filter_by(email=email).first():
        return None, f"Email '{email}' already registered"

    user = User(username=username, email=email, name=name, role=role)
    user.set_password(password)
    db.session.add(user)
    return user, None

#__________________________________________________________________________________________ * Users *__________________________________________________

@admin_bp.route("/users", methods=["GET"])
@login_required
@role_required("Admin")
def list_users():
    query = User.query
    role = request.args.get("role")
    if role:
        query = query.filter_by(role=role)
    users = query.order_by(User.username).all()
    return jsonify({"users": [user.to_dict() for user in users]}), 200

@admin_bp.route("/users", methods=["POST"])
@login_required
@role_required("Admin")
def create_user():
    data = request.get_json() or {}
    user, error = _new_user(
        (data.get("name") or "").strip(),
        (data.get("username") or "").strip(),
        (data.get("email") or "").strip().lower() or None,
        data.get("role", "Student"),
        data.get("password"),
    )
    if error:
        status = 409 if "already" in error else 400
        return jsonify({"error": error}), status

    db.session.commit()
    logger.info("Admin %s created user %s", current_user().username, user.username)
    return jsonify({"message": "User created successfully", "user": user.to_dict()}), 201

@admin_bp.route("/users/import", methods=["POST"])
@login_required
@role_required("Admin")
def import_users():
    """Bulk create users from a CSV with name, username, email, role, password columns."""
    file = request.files.get("file")
    if not file:
        return jsonify({"error": "A CSV file is required"}), 400

    try:
        decoded = file.read().decode("utf-8").splitlines()
    except UnicodeDecodeError:
        return jsonify({"error": "File must be UTF-8 encoded"}), 400

    reader = csv.DictReader(decoded)
    missing = [c for c in IMPORT_COLUMNS if c not in (reader.fieldnames or [])]
    if missing:
        return jsonify({"error": f"Missing columns: {', '.join(missing)}"}), 400

    created, errors = [], []
    for line, row in enumerate(reader, start=2):
        user, error = _new_user(
            (row.get("name") or "").strip(),
            (row.get("username") or "").strip(),
            (row.get("email") or "").strip().lower() or None,
            (row.get("role") or "Student").strip(),
            row.get("password"),
        )
        if error:
            errors.append({"line": line, "error": error})
            continue
        db.session.flush()
        created.append(user)

    db.session.commit()
    logger.info("Imported %d users (%d rejected)", len(created), len(errors))
    return jsonify({
        "message": f"Imported {len(created)} users",
        "created": [user.to_dict() for user in created],
        "errors": errors,
    }), 201 if created else 400

@admin_bp.route("/users/<int:user_id>/role", methods=["PUT"])
@login_required
@role_required("Admin")
def change_role(user_id):
    user = db.session.get(User, user_id)
    if not user:
        return jsonify({"error": "User not found"}), 404

    role = (request.get_json() or {}).get("role")
    try:
        validate_role(role, ROLES)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    user.role = role
    db.session.commit()
    return jsonify({"message": "Role updated", "user": user.to_dict()}), 200

@admin_bp.route("/users/<int:user_id>", methods=["DELETE"])
@login_required
@role_required("Admin")
def delete_user(user_id):
    user = db.session.get(User, user_id)
    if not user:
        return jsonify({"error": "User not found"}), 404
    if user.id == current_user().id:
        return jsonify({"error": "You can't delete your own account"}), 400

    db.session.delete(user)
    db.session.commit()
    logger.info("Admin %s deleted user %s", current_user().username, user.username)
    return jsonify({"message": "User deleted successfully"}), 200

#__________________________________________________________________________________________ * Classes *__________________________________________________

@admin_bp.route("/classes", methods=["GET"])
@login_required
@role_required("Admin")
def list_all_classes():
    classes = Classroom.query.order_by(Classroom.created_at.desc()).all()
    return jsonify({"classes": [c.to_dict() for c in classes]}), 200
