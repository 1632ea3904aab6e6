"""Shared fixtures: an in-memory app, users, classes and auth headers."""
import os

import pytest

os.environ.setdefault("FLASK_ENV", "testing")

from app import create_app
from extensions import socketio
from models import db
from models.classes import Classroom
from models.enrolments import Enrolment
from models.users import User
from classes.enrolment_manager import EnrolmentManager
from utils.tokens import token_for_user


@pytest.fixture
def app():
    app = create_app("testing")
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user(app):
    def _make(username, role="Student", name=None, email=None, password="secret123", credit_points=0):
        user = User(
            username=username,
            name=name or username.title(),
            role=role,
            email=email,
            credit_points=credit_points,
        )
        user.set_password(password)
        db.session.add(user)
        db.session.commit()
        return user
    return _make


@pytest.fixture
def auth():
    def _headers(user):
        return {"Authorization": f"Bearer {token_for_user(user)}"}
    return _headers


@pytest.fixture
def teacher(make_user):
    return make_user("teacher1", role="Teacher", name="Ms Teacher", email="teacher1@example.com")


@pytest.fixture
def student(make_user):
    return make_user("student1", name="Sam Student", email="student1@example.com")


@pytest.fixture
def other_student(make_user):
    return make_user("student2", name="Alex Student")


@pytest.fixture
def admin(make_user):
    return make_user("admin", role="Admin", name="Site Admin")


@pytest.fixture
def make_class(app):
    def _make(teacher, name="Biology", students=()):
        classroom = Classroom(name=name, teacher_id=teacher.id, code=EnrolmentManager.generate_code())
        db.session.add(classroom)
        db.session.commit()
        for s in students:
            db.session.add(Enrolment(class_id=classroom.id, student_id=s.id))
        db.session.commit()
        return classroom
    return _make


@pytest.fixture
def classroom(make_class, teacher, student):
    return make_class(teacher, students=[student])


@pytest.fixture
def socket_client(app, client):
    """Connect a socket client for a user, already authenticated."""
    clients = []

    def _connect(user):
        sio = socketio.test_client(app, flask_test_client=client, auth={"token": token_for_user(user)})
        clients.append(sio)
        return sio

    yield _connect
    for sio in clients:
        if sio.is_connected():
            sio.disconnect()

