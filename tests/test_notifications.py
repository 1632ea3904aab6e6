"""Notification storage, paging, read state and the live socket push."""
import pytest

from extensions import socketio
from models.notifications import Notification
from utils.notifications import create_notification, notify_users
from utils.tokens import token_for_user


def events(sio, name):
    return [m["args"][0] for m in sio.get_received() if m["name"] == name]


class TestNotifyUsers:
    def test_persists_one_per_recipient(self, teacher, student, other_student):
        created = notify_users([student, other_student, student], teacher, "announcement", "Hello class")
        assert len(created) == 2
        assert Notification.query.count() == 2

    def test_sender_is_skipped(self, teacher, student):
        assert notify_users([teacher], teacher, "comment", "Talking to myself") == []
        assert Notification.query.count() == 0

    def test_unknown_type(self, teacher, student):
        with pytest.raises(ValueError, match="party"):
            create_notification(student, teacher, "party", "Cake")

    def test_push_reaches_the_recipient_room(self, teacher, student, other_student, socket_client):
        student_sio = socket_client(student)
        other_sio = socket_client(other_student)
        assert events(student_sio, "authenticated") == [{"username": "student1", "room": "user:student1"}]

        notification = create_notification(student, teacher, "grade", "You got an A", reference_id=7, class_id=None)
        pushed = events(student_sio, "new-notification")
        assert pushed == [notification.to_dict()]
        assert pushed[0]["reference_id"] == "7"
        assert events(other_sio, "new-notification") == []


class TestSocketAuth:
    def test_bad_token(self, app, client):
        sio = socketio.test_client(app, flask_test_client=client, auth={"token": "junk"})
        assert events(sio, "auth_error")
        sio.emit("join-class", {"class_id": 1})
        assert events(sio, "auth_error") == [{"error": "Authenticate before joining a class"}]
        sio.disconnect()

    def test_late_authentication(self, app, client, student):
        sio = socketio.test_client(app, flask_test_client=client)
        sio.emit("authenticate", {"token": token_for_user(student)})
        assert events(sio, "authenticated")[0]["room"] == "user:student1"
        sio.disconnect()

    def test_join_class_requires_membership(self, classroom, other_student, socket_client):
        sio = socket_client(other_student)
        sio.emit("join-class", {"class_id": classroom.id})
        errors = events(sio, "join_error")
        assert errors and errors[0]["class_id"] == classroom.id


class TestNotificationApi:
    def _seed(self, teacher, student, count):
        return [create_notification(student, teacher, "announcement", f"Notice {i}") for i in range(count)]

    def test_paging_and_unread_count(self, client, teacher, student, auth):
        self._seed(teacher, student, 5)
        body = client.get("/api/notifications?page=2&limit=2", headers=auth(student)).get_json()
        assert body["total"] == 5
        assert body["unread_count"] == 5
        assert body["page"] == 2
        assert [n["message"] for n in body["notifications"]] == ["Notice 2", "Notice 1"]

    def test_mark_read_and_unread_filter(self, client, teacher, student, auth):
        first, second = self._seed(teacher, student, 2)
        res = client.put(f"/api/notifications/{first.id}/read", headers=auth(student))
        assert res.get_json()["notification"]["read"] is True

        body = client.get("/api/notifications?unread_only=true", headers=auth(student)).get_json()
        assert [n["id"] for n in body["notifications"]] == [second.id]
        assert body["unread_count"] == 1

    def test_read_all(self, client, teacher, student, auth):
        self._seed(teacher, student, 3)
        res = client.put("/api/notifications/read-all", headers=auth(student))
        assert res.get_json()["updated"] == 3
        assert client.get("/api/notifications", headers=auth(student)).get_json()["unread_count"] == 0

    def test_delete(self, client, teacher, student, auth):
        (notification,) = self._seed(teacher, student, 1)
        assert client.delete(f"/api/notifications/{notification.id}", headers=auth(student)).status_code == 200
        assert Notification.query.count() == 0

    def test_other_users_notifications_are_off_limits(self, client, teacher, student, other_student, auth):
        (notification,) = self._seed(teacher, student, 1)
        assert client.put(f"/api/notifications/{notification.id}/read", headers=auth(other_student)).status_code == 403
        assert client.delete(f"/api/notifications/{notification.id}", headers=auth(other_student)).status_code == 403
        assert client.delete("/api/notifications/999", headers=auth(student)).status_code == 404
