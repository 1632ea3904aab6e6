"""Admin user management and CSV import."""
import io

from models import db
from models.users import User

CSV_HEADER = "name,username,email,role,password\n"


def upload_csv(client, headers, text):
    return client.post("/api/admin/users/import", headers=headers, content_type="multipart/form-data",
                       data={"file": (io.BytesIO(text.encode("utf-8")), "users.csv")})


class TestAdminUsers:
    def test_admin_only(self, client, teacher, auth):
        assert client.get("/api/admin/users", headers=auth(teacher)).status_code == 403

    def test_create_and_filter(self, client, admin, student, auth):
        res = client.post("/api/admin/users", headers=auth(admin), json={
            "name": "New Teacher", "username": "teacher9", "password": "secret123", "role": "Teacher",
        })
        assert res.status_code == 201
        duplicate = client.post("/api/admin/users", headers=auth(admin), json={
            "name": "Again", "username": "teacher9", "password": "secret123",
        })
        assert duplicate.status_code == 409

        teachers = client.get("/api/admin/users?role=Teacher", headers=auth(admin)).get_json()["users"]
        assert [u["username"] for u in teachers] == ["teacher9"]

    def test_change_role(self, client, admin, student, auth):
        res = client.put(f"/api/admin/users/{student.id}/role", json={"role": "Teacher"}, headers=auth(admin))
        assert res.get_json()["user"]["role"] == "Teacher"
        bad = client.put(f"/api/admin/users/{student.id}/role", json={"role": "Owner"}, headers=auth(admin))
        assert bad.status_code == 400

    def test_delete_user(self, client, admin, student, auth):
        student_id = student.id
        assert client.delete(f"/api/admin/users/{admin.id}", headers=auth(admin)).status_code == 400
        assert client.delete(f"/api/admin/users/{student_id}", headers=auth(admin)).status_code == 200
        assert db.session.get(User, student_id) is None


class TestImport:
    def test_good_and_bad_rows(self, client, admin, student, auth):
        text = CSV_HEADER + (
            "Ann Lee,ann,ann@example.com,Student,secret123\n"
            "Ben Ode,ben,,Teacher,secret123\n"
            "Dup,student1,,Student,secret123\n"
            "Short,shorty,,Student,123\n"
        )
        res = upload_csv(client, auth(admin), text)
        assert res.status_code == 201
        body = res.get_json()
        assert [u["username"] for u in body["created"]] == ["ann", "ben"]
        assert [e["line"] for e in body["errors"]] == [4, 5]
        assert User.query.filter_by(username="ben").one().role == "Teacher"

    def test_missing_columns(self, client, admin, auth):
        res = upload_csv(client, auth(admin), "name,username\nAnn,ann\n")
        assert res.status_code == 400
        assert "password" in res.get_json()["error"]
