import logging
from functools import wraps

from flask import request, jsonify, g

from models import db
from models.users import User
from utils.tokens import decode_jwt

logger = logging.getLogger(__name__)


def get_request_token():
    """Read a token from the Authorization header, falling back to the cookie."""
    header = request.headers.get("Authorization", "")
    if header.lower().startswith("bearer "):
        return header.split(" ", 1)[1].strip() or None
    return request.cookies.get("access_token")

def optional_user():
    """Decode the caller's token if there is one, else return None."""
    g.pop("user", None)
    token = get_request_token()
    if not token:
        return None
    payload = decode_jwt(token)
    if payload:
        g.user = payload
    return payload

def current_user():
    """Load the authenticated user's row, cached on ``g``."""
    user_id = g.user.get("user_id") if g.get("user") else None
    cached = g.get("current_user")
    if cached is None or cached.id != user_id:
        g.current_user = db.session.get(User, user_id) if user_id else None
    return g.current_user

def login_required(f):
    @wraps(f)
    def decorated_function(*args, **kwargs):
        g.pop("user", None)
        token = get_request_token()
        if not token:
            return jsonify({"error": "Access token required"}), 401

        decoded = decode_jwt(token)
        if not decoded:
            logger.warning("Rejected token on %s", request.path)
            return jsonify({"error": "Invalid or expired token"}), 403
        g.user = decoded

        if current_user() is None:
            return jsonify({"error": "User no longer exists"}), 403

        return f(*args, **kwargs)

    return decorated_function

def role_required(*roles):
    """Restrict a login_required route to the given roles."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            user = current_user()
            if user.role not in roles:
                logger.warning("%s (%s) denied %s", user.username, user.role, request.path)
                return jsonify({"error": f"{' or '.join(roles)} access required"}), 403
            return f(*args, **kwargs)
        return decorated_function
    return decorator

def can_manage_class(classroom, user):
    return user.is_admin or classroom.teacher_id == user.id

def can_view_class(classroom, user):
    return user.is_admin or classroom.is_member(user.id)
