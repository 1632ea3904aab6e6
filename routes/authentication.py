import logging
import secrets
from datetime import datetime, timedelta

from flask import Blueprint, request, jsonify, make_response, current_app
from werkzeug.security import generate_password_hash, check_password_hash

from models import db
from models.users import User
from classes.validators import validate_email, validate_password, validate_role, validate_length
from utils.email import send_otp_email
from utils.tokens import token_for_user
from utils.utils import login_required, current_user

logger = logging.getLogger(__name__)

auth_bp = Blueprint('auth_bp', __name__)

PUBLIC_ROLES = ("Student", "Teacher")
GENERIC_RESET_MESSAGE = "If an account exists for that email, a reset code has been sent."


def _auth_response(user, message, status=200):
    token = token_for_user(user)
    response = make_response(jsonify({
        "message": message,
        "token": token,
        "user": user.to_dict()
    }), status)
    response.set_cookie(
        "access_token", token,
        httponly=True,
        secure=current_app.config.get("SESSION_COOKIE_SECURE", False),
        samesite=current_app.config.get("SESSION_COOKIE_SAMESITE", "Lax"),
        path="/",
        max_age=current_app.config.get("JWT_EXPIRATION_HOURS", 24) * 3600
    )
    return response

def _create_user(data, allowed_roles):
    name = (data.get('name') or '').strip()
    username = (data.get('username') or '').strip()
    email = (data.get('email') or '').strip().lower() or None
    password = data.get('password')
    role = data.get('role', 'Student')

    if not name or not username or not password:
        return None, (jsonify({"error": "Name, username and password are required"}), 400)

    try:
        validate_length("Username", username, 50)
        validate_role(role, allowed_roles)
        validate_email(email)
        validate_password(password)
    except ValueError as e:
        return None, (jsonify({"error": str(e)}), 400)

    if User.query.filter_by(username=username).first():
        return None, (jsonify({"error": "Username already taken"}), 409)
    if email and User.query.filter_by(email=email).first():
        return None, (jsonify({"error": "Email already registered"}), 409)

    user = User(username=username, email=email, name=name, role=role)
    user.set_password(password)
    db.session.add(user)
    db.session.commit()
    logger.info("Registered %s as %s", username, role)
    return user, None

def _valid_otp(user, otp):
    if not user or not user.reset_otp_hash or not user.reset_otp_expires_at:
        return False
    if datetime.utcnow() > user.reset_otp_expires_at:
        return False
    return check_password_hash(user.reset_otp_hash, str(otp or ""))

def _user_by_email(email):
    email = (email or "").strip().lower()
    return User.query.filter_by(email=email).first() if email else None

# Register
@auth_bp.route('/register', methods=['POST'])
def register():
    data = request.get_json() or {}
    user, error = _create_user(data, PUBLIC_ROLES)
    if error:
        return error
    return _auth_response(user, "User registered successfully!", 201)

# Admin bootstrap, guarded by the setup key
@auth_bp.route('/register-admin', methods=['POST'])
def register_admin():
    data = request.get_json() or {}
    setup_key = current_app.config.get("ADMIN_SETUP_KEY")
    if not setup_key or data.get("setup_key") != setup_key:
        logger.warning("Rejected admin registration for %s", data.get("username"))
        return jsonify({"error": "Invalid setup key"}), 403

    data = {**data, "role": "Admin"}
    user, error = _create_user(data, ("Admin",))
    if error:
        return error
    return _auth_response(user, "Admin registered successfully!", 201)

# Login
@auth_bp.route('/login', methods=['POST'])
def login():
    data = request.get_json() or {}
    identifier = (data.get("username") or data.get("email") or data.get("username_or_email") or "").strip()
    password = data.get("password")

    if not identifier or not password:
        return jsonify({"error": "Username or email and password are required"}), 400

    user = User.query.filter(
        (User.username == identifier) | (User.email == identifier.lower())
    ).first()

    if not user or not user.check_password(password):
        logger.warning("Failed login for %s", identifier)
        return jsonify({"error": "Invalid credentials"}), 401

    return _auth_response(user, "Login successful")

# Logout
@auth_bp.route('/logout', methods=['POST'])
def logout():
    response = make_response(jsonify({"message": "Logout successful"}))
    response.set_cookie("access_token", "", httponly=True, path="/", max_age=0)
    return response

# Auth Check
@auth_bp.route('/verify-token', methods=['GET'])
@login_required
def verify_token():
    return jsonify({"valid": True, "user": current_user().to_dict()})

#__________________________________________________________________________________________ * Profile *__________________________________________________

@auth_bp.route('/profile', methods=['GET'])
@login_required
def get_profile():
    return jsonify({"user": current_user().to_dict()})

@auth_bp.route('/profile', methods=['PUT'])
@login_required
def update_profile():
    user = current_user()
    data = request.get_json() or {}

    if "name" in data:
        name = (data.get("name") or "").strip()
        if not name:
            return jsonify({"error": "Name can't be empty"}), 400
        user.name = name

    if "email" in data:
        email = (data.get("email") or "").strip().lower() or None
        try:
            validate_email(email)
        except ValueError as e:
            return jsonify({"error": str(e)}), 400
        if email and User.query.filter(User.email == email, User.id != user.id).first():
            return jsonify({"error": "Email already registered"}), 409
        user.email = email

    if data.get("new_password"):
        if not user.check_password(data.get("current_password") or ""):
            return jsonify({"error": "Current password is incorrect"}), 400
        try:
            validate_password(data["new_password"])
        except ValueError as e:
            return jsonify({"error": str(e)}), 400
        user.set_password(data["new_password"])

    db.session.commit()
    return jsonify({"message": "Profile updated successfully", "user": user.to_dict()})

#__________________________________________________________________________________________ * Password reset *__________________________________________________

@auth_bp.route('/forgot-password', methods=['POST'])
def forgot_password():
    data = request.get_json() or {}
    user = _user_by_email(data.get("email"))

    if user:
        otp = f"{secrets.randbelow(1000000):06d}"
        user.reset_otp_hash = generate_password_hash(otp, method="pbkdf2:sha256")
        user.reset_otp_expires_at = datetime.utcnow() + timedelta(
            minutes=current_app.config.get("OTP_EXPIRY_MINUTES", 10))
        db.session.commit()
        send_otp_email(user, otp)
        logger.info("Password reset code issued for %s", user.username)

    return jsonify({"message": GENERIC_RESET_MESSAGE})

@auth_bp.route('/verify-otp', methods=['POST'])
def verify_otp():
    data = request.get_json() or {}
    if not _valid_otp(_user_by_email(data.get("email")), data.get("otp")):
        return jsonify({"error": "Invalid or expired code"}), 400
    return jsonify({"message": "Code verified", "valid": True})

@auth_bp.route('/reset-password', methods=['POST'])
def reset_password():
    data = request.get_json() or {}
    user = _user_by_email(data.get("email"))
    if not _valid_otp(user, data.get("otp")):
        return jsonify({"error": "Invalid or expired code"}), 400
    try:
        validate_password(data.get("new_password"))
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    user.set_password(data["new_password"])
    user.reset_otp_hash = None
    user.reset_otp_expires_at = None
    db.session.commit()
    logger.info("Password reset for %s", user.username)
    return jsonify({"message": "Password reset successfully"})
