import logging
import datetime

import jwt
from flask import current_app

logger = logging.getLogger(__name__)


def _secret():
    return current_app.config["JWT_SECRET_KEY"]

def get_jwt_token(user_data, expires_in=None):
    """Generate JWT token with user payload"""
    if not user_data:
        raise ValueError("User data must be provided to generate JWT token")

    if expires_in is None:
        expires_in = datetime.timedelta(hours=current_app.config.get("JWT_EXPIRATION_HOURS", 24))
    expiration = datetime.datetime.now(datetime.timezone.utc) + expires_in
    payload = {"exp": expiration, **user_data}

    return jwt.encode(payload, _secret(), algorithm="HS256")

def token_for_user(user):
    return get_jwt_token({
        "user_id": user.id,
        "username": user.username,
        "role": user.role,
    })

def decode_jwt(token):
    """Decode and validate a JWT token. Returns None when it can't be trusted."""
    try:
        return jwt.decode(token, _secret(), algorithms=["HS256"])
    except jwt.ExpiredSignatureError:
        logger.info("Token expired")
        return None
    except jwt.InvalidTokenError:
        logger.info("Invalid token provided")
        return None
