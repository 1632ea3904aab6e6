import logging

from flask import request
from flask_socketio import emit, join_room, leave_room

from extensions import socketio
from models import db
from models.classes import Classroom
from models.users import User
from utils.tokens import decode_jwt

logger = logging.getLogger(__name__)

# socket id -> user id, for connections that have authenticated
connected_users = {}


def user_room(username):
    return f"user:{username}"

def class_room(class_id):
    return f"class:{class_id}"

def push_to_user(username, event, payload):
    """Best-effort emit to one user's room."""
    try:
        socketio.emit(event, payload, to=user_room(username))
    except Exception:
        logger.exception("Failed to push %s to %s", event, username)

def push_to_class(class_id, event, payload):
    try:
        socketio.emit(event, payload, to=class_room(class_id))
    except Exception:
        logger.exception("Failed to push %s to class %s", event, class_id)

def broadcast(event, payload):
    try:
        socketio.emit(event, payload)
    except Exception:
        logger.exception("Failed to broadcast %s", event)


def _token_from(data):
    if isinstance(data, dict):
        return data.get("token")
    return data

def _authenticate(token):
    payload = decode_jwt(token) if token else None
    user = db.session.get(User, payload.get("user_id")) if payload else None
    if not user:
        emit("auth_error", {"error": "Invalid or expired token"})
        return None
    connected_users[request.sid] = user.id
    join_room(user_room(user.username))
    logger.debug("Socket %s authenticated as %s", request.sid, user.username)
    emit("authenticated", {"username": user.username, "room": user_room(user.username)})
    return user

def _socket_user():
    user_id = connected_users.get(request.sid)
    return db.session.get(User, user_id) if user_id else None


@socketio.on("connect")
def on_connect(auth=None):
    token = _token_from(auth)
    if token:
        _authenticate(token)

@socketio.on("authenticate")
def on_authenticate(data):
    _authenticate(_token_from(data))

@socketio.on("join-class")
def on_join_class(data):
    user = _socket_user()
    if not user:
        emit("auth_error", {"error": "Authenticate before joining a class"})
        return
    class_id = data.get("class_id") if isinstance(data, dict) else data
    classroom = db.session.get(Classroom, int(class_id)) if str(class_id).isdigit() else None
    if not classroom or not (user.is_admin or classroom.is_member(user.id)):
        emit("join_error", {"error": "Not a member of this class", "class_id": class_id})
        return
    join_room(class_room(classroom.id))
    emit("joined-class", {"class_id": classroom.id})

@socketio.on("leave-class")
def on_leave_class(data):
    class_id = data.get("class_id") if isinstance(data, dict) else data
    leave_room(class_room(class_id))
    emit("left-class", {"class_id": class_id})

@socketio.on("disconnect")
def on_disconnect(*args):
    connected_users.pop(request.sid, None)
