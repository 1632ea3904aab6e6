"""Class management and enrolment by code."""
from models import db
from models.classes import Classroom
from classes.enrolment_manager import CODE_ALPHABET


class TestCreateClass:
    def test_teacher_creates_class_with_code(self, client, teacher, auth):
        res = client.post("/api/classes", json={"name": "Chemistry", "section": "A"}, headers=auth(teacher))
        assert res.status_code == 201
        data = res.get_json()["class"]
        assert data["teacher"] == "teacher1"
        assert len(data["code"]) == 6
        assert all(ch in CODE_ALPHABET for ch in data["code"])
        assert data["bg"] == "#FFF0D8"

    def test_name_required(self, client, teacher, auth):
        res = client.post("/api/classes", json={"name": "  "}, headers=auth(teacher))
        assert res.status_code == 400

    def test_listing_is_scoped_by_role(self, client, teacher, student, other_student, make_class, auth):
        make_class(teacher, name="Joined", students=[student])
        make_class(teacher, name="Other", students=[other_student])

        mine = client.get("/api/classes", headers=auth(student)).get_json()["classes"]
        taught = client.get("/api/classes", headers=auth(teacher)).get_json()["classes"]
        assert [c["name"] for c in mine] == ["Joined"]
        assert len(taught) == 2


class TestClassAccess:
    def test_non_member_is_forbidden(self, client, classroom, other_student, auth):
        res = client.get(f"/api/classes/{classroom.id}", headers=auth(other_student))
        assert res.status_code == 403

    def test_teacher_sees_roster(self, client, classroom, teacher, auth):
        res = client.get(f"/api/classes/{classroom.id}", headers=auth(teacher))
        assert res.get_json()["class"]["students"] == ["student1"]

    def test_student_cannot_edit(self, client, classroom, student, auth):
        res = client.put(f"/api/classes/{classroom.id}", json={"name": "Mine"}, headers=auth(student))
        assert res.status_code == 403

    def test_teacher_edits_and_deletes(self, client, classroom, teacher, auth):
        res = client.put(f"/api/classes/{classroom.id}", json={"name": "Biology II"}, headers=auth(teacher))
        assert res.get_json()["class"]["name"] == "Biology II"

        class_id = classroom.id
        assert client.delete(f"/api/classes/{class_id}", headers=auth(teacher)).status_code == 200
        assert db.session.get(Classroom, class_id) is None

    def test_missing_class(self, client, teacher, auth):
        assert client.get("/api/classes/999", headers=auth(teacher)).status_code == 404


class TestEnrolment:
    def test_join_by_code(self, client, teacher, other_student, make_class, auth):
        classroom = make_class(teacher)
        res = client.post("/api/classes/join", json={"code": classroom.code.lower()}, headers=auth(other_student))
        assert res.status_code == 200
        assert classroom.is_student(other_student.id)

    def test_join_twice_is_rejected(self, client, classroom, student, auth):
        res = client.post("/api/classes/join", json={"code": classroom.code}, headers=auth(student))
        assert res.status_code == 400

    def test_unknown_code(self, client, student, auth):
        res = client.post("/api/classes/join", json={"code": "ZZZZZZ"}, headers=auth(student))
        assert res.status_code == 404

    def test_teachers_cannot_join(self, client, classroom, make_user, auth):
        other_teacher = make_user("teacher2", role="Teacher")
        res = client.post("/api/classes/join", json={"code": classroom.code}, headers=auth(other_teacher))
        assert res.status_code == 403

    def test_leave(self, client, classroom, student, auth):
        assert client.post(f"/api/classes/{classroom.id}/leave", headers=auth(student)).status_code == 200
        assert not classroom.is_student(student.id)
        assert client.post(f"/api/classes/{classroom.id}/leave", headers=auth(student)).status_code == 400

    def test_teacher_removes_student(self, client, classroom, teacher, student, auth):
        res = client.delete(f"/api/classes/{classroom.id}/students/student1", headers=auth(teacher))
        assert res.status_code == 200
        assert not classroom.is_student(student.id)
        again = client.delete(f"/api/classes/{classroom.id}/students/student1", headers=auth(teacher))
        assert again.status_code == 404

    def test_people(self, client, classroom, student, auth):
        res = client.get(f"/api/classes/{classroom.id}/people", headers=auth(student))
        body = res.get_json()
        assert body["teacher"]["username"] == "teacher1"
        assert body["students"] == [{"username": "student1", "name": "Sam Student"}]
