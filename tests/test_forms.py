"""Form building, submission gating, scoring and the manual grading workflow."""
import csv
import io

import pytest

from models import db
from models.forms import Form
from models.notifications import Notification

QUIZ_QUESTIONS = [
    {"id": "q1", "type": "multiple_choice", "title": "Pick B", "options": ["A", "B", "C"],
     "correct_answer": "B", "points": 2, "required": True},
    {"id": "q2", "type": "enumeration", "title": "Primary colours of light",
     "enumeration_answers": ["red", "green", "blue"], "points": 3},
    {"id": "q3", "type": "paragraph", "title": "Explain photosynthesis", "points": 5},
    {"id": "q4", "type": "short_answer", "title": "Any comments?"},
]


@pytest.fixture
def make_form(client, teacher, auth):
    def _make(questions=None, settings=None, status="published", owner=None, **extra):
        body = {
            "title": extra.pop("title", "Quiz 1"),
            "questions": questions if questions is not None else QUIZ_QUESTIONS,
            "settings": settings or {},
            "status": status,
            **extra,
        }
        res = client.post("/api/forms", json=body, headers=auth(owner or teacher))
        assert res.status_code == 201, res.get_json()
        return res.get_json()["form"]
    return _make


def submit(client, form_id, answers, headers=None, **extra):
    return client.post(f"/api/forms/{form_id}/submit", json={"answers": answers, **extra}, headers=headers or {})


class TestFormCrud:
    def test_create_fills_defaults(self, make_form):
        form = make_form(settings={"is_quiz": True})
        assert form["settings"]["is_quiz"] is True
        assert form["settings"]["require_login"] is True
        assert form["theme"]["font_family"] == "Roboto"
        assert [q["order"] for q in form["questions"]] == [0, 1, 2, 3]
        assert form["availability_status"] == "available"

    def test_question_order_is_normalized(self, client, make_form, student, auth):
        form = make_form(questions=[
            {"id": "a", "type": "short_answer", "title": "First", "order": None},
            {"id": "b", "type": "short_answer", "title": "Second", "order": "5"},
            {"id": "c", "type": "short_answer", "title": "Third"},
        ])
        assert [q["order"] for q in form["questions"]] == [0, 5, 2]

        res = client.get(f"/api/forms/{form['id']}", headers=auth(student))
        assert res.status_code == 200
        assert [q["id"] for q in res.get_json()["form"]["questions"]] == ["a", "c", "b"]

    def test_question_order_must_be_whole(self, client, teacher, auth):
        for order in ("first", 1.5, True):
            res = client.post("/api/forms", headers=auth(teacher), json={
                "title": "Broken", "questions": [{"type": "short_answer", "title": "?", "order": order}],
            })
            assert res.status_code == 400

    def test_bad_question_type(self, client, teacher, auth):
        res = client.post("/api/forms", headers=auth(teacher), json={
            "title": "Broken", "questions": [{"type": "essay", "title": "?"}],
        })
        assert res.status_code == 400

    def test_correct_answer_must_be_an_option(self, client, teacher, auth):
        res = client.post("/api/forms", headers=auth(teacher), json={
            "title": "Broken",
            "questions": [{"type": "dropdown", "title": "?", "options": ["x"], "correct_answer": "y"}],
        })
        assert res.status_code == 400

    def test_students_cannot_create(self, client, student, auth):
        assert client.post("/api/forms", json={"title": "Mine"}, headers=auth(student)).status_code == 403

    def test_update_and_delete(self, client, make_form, teacher, student, auth):
        form = make_form()
        res = client.put(f"/api/forms/{form['id']}", json={"title": "Quiz 1 (final)"}, headers=auth(teacher))
        assert res.get_json()["form"]["title"] == "Quiz 1 (final)"
        assert client.put(f"/api/forms/{form['id']}", json={"title": "x"}, headers=auth(student)).status_code == 403

        submit(client, form["id"], [{"question_id": "q1", "answer": "B"}], auth(student))
        assert client.delete(f"/api/forms/{form['id']}", headers=auth(teacher)).status_code == 200
        assert db.session.get(Form, form["id"]) is None


class TestRespondentView:
    def test_answer_keys_are_hidden(self, client, make_form, student, auth):
        form = make_form(settings={"is_quiz": True})
        res = client.get(f"/api/forms/{form['id']}", headers=auth(student))
        assert res.status_code == 200
        for question in res.get_json()["form"]["questions"]:
            assert "correct_answer" not in question
            assert "enumeration_answers" not in question

    def test_matching_options_are_exposed_without_pairs(self, client, make_form, student, auth):
        form = make_form(questions=[{
            "id": "m1", "type": "matching_type", "title": "Capitals", "points": 2,
            "matching_pairs": [{"left": "France", "right": "Paris"}, {"left": "Italy", "right": "Rome"}],
        }], settings={"is_quiz": True})
        question = client.get(f"/api/forms/{form['id']}", headers=auth(student)).get_json()["form"]["questions"][0]
        assert "matching_pairs" not in question
        assert question["matching_left"] == ["France", "Italy"]
        assert sorted(question["matching_options"]) == ["Paris", "Rome"]

    def test_shuffle_is_stable_per_user(self, client, make_form, student, auth):
        questions = [{"id": f"q{i}", "type": "short_answer", "title": f"Q{i}"} for i in range(8)]
        form = make_form(questions=questions, settings={"shuffle_questions": True})
        first = client.get(f"/api/forms/{form['id']}", headers=auth(student)).get_json()["form"]["questions"]
        second = client.get(f"/api/forms/{form['id']}", headers=auth(student)).get_json()["form"]["questions"]
        assert [q["id"] for q in first] == [q["id"] for q in second]
        assert sorted(q["id"] for q in first) == sorted(q["id"] for q in questions)

    def test_drafts_are_hidden(self, client, make_form, student, auth):
        form = make_form(status="draft")
        assert client.get(f"/api/forms/{form['id']}", headers=auth(student)).status_code == 404

    def test_login_required_for_anonymous(self, client, make_form):
        form = make_form()
        assert client.get(f"/api/forms/{form['id']}").status_code == 401


class TestSubmission:
    def test_quiz_is_scored_with_partial_credit(self, client, make_form, teacher, student, auth):
        form = make_form(settings={"is_quiz": True})
        res = submit(client, form["id"], [
            {"question_id": "q1", "answer": "B"},
            {"question_id": "q2", "answer": ["Red", "blue", "blue"]},
            {"question_id": "q3", "answer": "Plants use light."},
        ], auth(student))
        assert res.status_code == 201
        assert "score" not in res.get_json()

        responses = client.get(f"/api/forms/{form['id']}/responses", headers=auth(teacher)).get_json()["responses"]
        assert len(responses) == 1
        response = responses[0]
        assert response["score"]["total"] == 4
        assert response["score"]["max_score"] == 10
        assert response["score"]["percentage"] == 40
        assert response["status"] == "submitted"
        assert response["respondent"]["username"] == "student1"

        by_question = {a["question_id"]: a for a in response["answers"]}
        assert by_question["q1"]["is_correct"] is True
        assert by_question["q2"]["partial_credit"] == pytest.approx(0.6667)
        assert by_question["q3"]["pending_manual"] is True
        assert by_question["q3"]["is_correct"] is None

    def test_fully_auto_graded_quiz_is_marked_graded(self, client, make_form, student, auth):
        form = make_form(questions=QUIZ_QUESTIONS[:2], settings={"is_quiz": True, "show_correct_answers": True})
        res = submit(client, form["id"], [{"question_id": "q1", "answer": "A"}], auth(student))
        body = res.get_json()
        assert body["score"] == {"total": 0, "max_score": 5, "percentage": 0, "auto_graded": True}
        assert body["answers"][0]["is_correct"] is False

    def test_survey_is_not_scored(self, client, make_form, teacher, student, auth):
        form = make_form()
        submit(client, form["id"], [{"question_id": "q1", "answer": "B"}], auth(student))
        response = client.get(f"/api/forms/{form['id']}/responses", headers=auth(teacher)).get_json()["responses"][0]
        assert response["score"]["max_score"] == 0
        assert response["answers"][0]["is_correct"] is None
        assert response["score"]["auto_graded"] is False

    def test_anonymous_response(self, client, make_form, teacher, auth):
        form = make_form(settings={"require_login": False, "collect_email": True})
        missing_email = submit(client, form["id"], [{"question_id": "q1", "answer": "A"}])
        assert missing_email.status_code == 400

        res = submit(client, form["id"], [{"question_id": "q1", "answer": "A"}],
                     respondent={"name": "Visitor", "email": "visitor@example.com"})
        assert res.status_code == 201
        assert res.get_json()["message"] == "Your response has been recorded."
        response = client.get(f"/api/forms/{form['id']}/responses", headers=auth(teacher)).get_json()["responses"][0]
        assert response["respondent"] == {"username": None, "name": "Visitor", "email": "visitor@example.com"}

    def test_required_questions(self, client, make_form, student, auth):
        form = make_form()
        res = submit(client, form["id"], [{"question_id": "q2", "answer": ["red"]}], auth(student))
        assert res.status_code == 400
        assert res.get_json()["missing"] == ["Pick B"]

    def test_duplicate_submission(self, client, make_form, student, auth):
        form = make_form()
        answers = [{"question_id": "q1", "answer": "B"}]
        assert submit(client, form["id"], answers, auth(student)).status_code == 201
        assert submit(client, form["id"], answers, auth(student)).status_code == 409

    def test_multiple_submissions_when_allowed(self, client, make_form, student, auth):
        form = make_form(settings={"allow_multiple_submissions": True})
        answers = [{"question_id": "q1", "answer": "B"}]
        assert submit(client, form["id"], answers, auth(student)).status_code == 201
        assert submit(client, form["id"], answers, auth(student)).status_code == 201

    def test_completion_time_is_recorded(self, client, make_form, teacher, student, auth):
        form = make_form()
        submit(client, form["id"], [{"question_id": "q1", "answer": "B"}], auth(student),
               start_time="2000-01-01T00:00:00Z")
        response = client.get(f"/api/forms/{form['id']}/responses", headers=auth(teacher)).get_json()["responses"][0]
        assert response["completion_time"] > 0


class TestSubmissionGates:
    answers = [{"question_id": "q1", "answer": "B"}]

    def test_draft(self, client, make_form, student, auth):
        form = make_form(status="draft")
        assert submit(client, form["id"], self.answers, auth(student)).status_code == 404

    def test_closed_status(self, client, make_form, student, auth):
        form = make_form(status="closed")
        assert submit(client, form["id"], self.answers, auth(student)).status_code == 400

    def test_not_accepting(self, client, make_form, student, auth):
        form = make_form(settings={"accepting_responses": False})
        assert submit(client, form["id"], self.answers, auth(student)).status_code == 400

    def test_not_yet_open(self, client, make_form, student, auth):
        form = make_form(settings={"open_at": "2999-01-01T00:00:00Z"})
        assert form["availability_status"] == "not_yet_open"
        res = submit(client, form["id"], self.answers, auth(student))
        assert res.status_code == 400
        assert res.get_json()["open_at"].startswith("2999-01-01")

    def test_past_close(self, client, make_form, student, auth):
        form = make_form(settings={"close_at": "2000-01-01T00:00:00Z"})
        assert submit(client, form["id"], self.answers, auth(student)).status_code == 400

    def test_login_required(self, client, make_form):
        form = make_form()
        assert submit(client, form["id"], self.answers).status_code == 401

    def test_class_form_needs_enrolment(self, client, make_form, classroom, student, other_student, auth):
        form = make_form(class_id=classroom.id)
        assert submit(client, form["id"], self.answers, auth(other_student)).status_code == 403
        assert submit(client, form["id"], self.answers, auth(student)).status_code == 201


class TestManualGrading:
    def test_grading_updates_score_and_notifies(self, client, make_form, teacher, student, auth):
        form = make_form(settings={"is_quiz": True})
        submit(client, form["id"], [
            {"question_id": "q1", "answer": "B"},
            {"question_id": "q3", "answer": "Plants use light."},
        ], auth(student))
        response_id = client.get(f"/api/forms/{form['id']}/responses",
                                 headers=auth(teacher)).get_json()["responses"][0]["id"]

        res = client.put(f"/api/forms/{form['id']}/responses/{response_id}/grade", headers=auth(teacher),
                         json={"manual_scores": {"q3": 4}, "feedback": "Good start"})
        assert res.status_code == 200
        graded = res.get_json()["response"]
        assert graded["score"]["total"] == 6
        assert graded["score"]["max_score"] == 10
        assert graded["score"]["percentage"] == 60
        assert graded["score"]["auto_graded"] is False
        assert graded["status"] == "graded"
        assert graded["feedback"] == "Good start"

        notification = Notification.query.filter_by(recipient_id=student.id).one()
        assert notification.type == "grade"
        assert "6/10" in notification.message

    def test_score_over_question_points(self, client, make_form, teacher, student, auth):
        form = make_form(settings={"is_quiz": True})
        submit(client, form["id"], [{"question_id": "q1", "answer": "B"},
                                    {"question_id": "q3", "answer": "..."}], auth(student))
        response_id = client.get(f"/api/forms/{form['id']}/responses",
                                 headers=auth(teacher)).get_json()["responses"][0]["id"]
        res = client.put(f"/api/forms/{form['id']}/responses/{response_id}/grade", headers=auth(teacher),
                         json={"manual_scores": {"q3": 50}})
        assert res.status_code == 400

    def test_score_override_keeps_percentage_consistent(self, client, make_form, teacher, student, auth):
        form = make_form(settings={"is_quiz": True})
        submit(client, form["id"], [{"question_id": "q1", "answer": "B"},
                                    {"question_id": "q3", "answer": "..."}], auth(student))
        response_id = client.get(f"/api/forms/{form['id']}/responses",
                                 headers=auth(teacher)).get_json()["responses"][0]["id"]
        url = f"/api/forms/{form['id']}/responses/{response_id}/grade"

        score = client.put(url, headers=auth(teacher), json={"score": {"total": 8}}).get_json()["response"]["score"]
        assert score["total"] == 8
        assert score["max_score"] == 10
        assert score["percentage"] == 80

        score = client.put(url, headers=auth(teacher),
                           json={"score": {"total": 8, "percentage": 75}}).get_json()["response"]["score"]
        assert score["percentage"] == 75

        res = client.put(url, headers=auth(teacher), data='{"score": {"total": NaN}}',
                         content_type="application/json")
        assert res.status_code == 400
        res = client.put(url, headers=auth(teacher), data='{"manual_scores": {"q3": NaN}}',
                         content_type="application/json")
        assert res.status_code == 400

    def test_respondent_can_read_but_not_grade(self, client, make_form, teacher, student, auth):
        form = make_form()
        submit(client, form["id"], [{"question_id": "q1", "answer": "B"}], auth(student))
        response_id = client.get(f"/api/forms/{form['id']}/responses",
                                 headers=auth(teacher)).get_json()["responses"][0]["id"]

        assert client.get(f"/api/forms/{form['id']}/responses/{response_id}",
                          headers=auth(student)).status_code == 200
        res = client.put(f"/api/forms/{form['id']}/responses/{response_id}/grade",
                         headers=auth(student), json={"score": 100})
        assert res.status_code == 403

    def test_delete_response_updates_count(self, client, make_form, teacher, student, auth):
        form = make_form()
        submit(client, form["id"], [{"question_id": "q1", "answer": "B"}], auth(student))
        response_id = client.get(f"/api/forms/{form['id']}/responses",
                                 headers=auth(teacher)).get_json()["responses"][0]["id"]
        res = client.delete(f"/api/forms/{form['id']}/responses/{response_id}", headers=auth(teacher))
        assert res.status_code == 200
        assert db.session.get(Form, form["id"]).response_count == 0


class TestAnalytics:
    def test_summary_counts_options_and_scores(self, client, make_form, teacher, student, other_student, auth):
        form = make_form(questions=QUIZ_QUESTIONS[:1], settings={"is_quiz": True})
        submit(client, form["id"], [{"question_id": "q1", "answer": "B"}], auth(student))
        submit(client, form["id"], [{"question_id": "q1", "answer": "C"}], auth(other_student))

        analytics = client.get(f"/api/forms/{form['id']}/analytics", headers=auth(teacher)).get_json()["analytics"]
        assert analytics["total_responses"] == 2
        question = analytics["questions"][0]
        assert question["option_counts"] == {"A": 0, "B": 1, "C": 1}
        assert question["correct_count"] == 1
        assert question["correct_percentage"] == 50
        quiz = analytics["quiz_analytics"]
        assert quiz["average_score"] == 50
        assert quiz["highest_score"] == 100
        assert quiz["lowest_score"] == 0
        assert quiz["pass_rate"] == 50

    def test_csv_export(self, client, make_form, teacher, student, auth):
        form = make_form(questions=QUIZ_QUESTIONS[:1], settings={"is_quiz": True}, title="Pop Quiz")
        submit(client, form["id"], [{"question_id": "q1", "answer": "B"}], auth(student))

        res = client.get(f"/api/forms/{form['id']}/export", headers=auth(teacher))
        assert res.status_code == 200
        assert res.mimetype == "text/csv"
        assert "Pop_Quiz_responses.csv" in res.headers["Content-Disposition"]
        rows = list(csv.reader(io.StringIO(res.get_data(as_text=True))))
        assert rows[0] == ["Timestamp", "Respondent Name", "Respondent Email", "Pick B",
                           "Score", "Max Score", "Percentage"]
        assert rows[1][1:] == ["Sam Student", "student1@example.com", "B", "2", "2", "100.00"]

    def test_analytics_are_for_editors_only(self, client, make_form, student, auth):
        form = make_form()
        assert client.get(f"/api/forms/{form['id']}/analytics", headers=auth(student)).status_code == 403


class TestTemplatesAndSharing:
    def test_use_template(self, client, make_form, teacher, auth):
        template = make_form(is_template=True, template_category="quiz", title="Quiz template")
        listed = client.get("/api/forms/templates?category=quiz", headers=auth(teacher)).get_json()["templates"]
        assert [t["id"] for t in listed] == [template["id"]]

        res = client.post(f"/api/forms/templates/{template['id']}/use", json={"title": "Week 3 quiz"},
                          headers=auth(teacher))
        assert res.status_code == 201
        form = res.get_json()["form"]
        assert form["title"] == "Week 3 quiz"
        assert form["is_template"] is False
        assert form["status"] == "draft"
        assert len(form["questions"]) == len(QUIZ_QUESTIONS)

    def test_collaborators(self, client, make_form, make_user, teacher, student, auth):
        colleague = make_user("teacher2", role="Teacher")
        form = make_form()

        assert client.post(f"/api/forms/{form['id']}/collaborators", json={"username": "student1"},
                           headers=auth(teacher)).status_code == 400
        res = client.post(f"/api/forms/{form['id']}/collaborators", json={"username": "teacher2"},
                          headers=auth(teacher))
        assert res.get_json()["collaborators"] == ["teacher2"]

        assert client.put(f"/api/forms/{form['id']}", json={"description": "Edited"},
                          headers=auth(colleague)).status_code == 200
        assert client.delete(f"/api/forms/{form['id']}", headers=auth(colleague)).status_code == 403

        res = client.delete(f"/api/forms/{form['id']}/collaborators/teacher2", headers=auth(teacher))
        assert res.get_json()["collaborators"] == []
        assert client.put(f"/api/forms/{form['id']}", json={"description": "Again"},
                          headers=auth(colleague)).status_code == 403

    def test_send_to_class(self, client, make_form, classroom, teacher, student, auth):
        form = make_form(status="draft")
        res = client.post(f"/api/forms/{form['id']}/send-to-class", headers=auth(teacher),
                          json={"class_ids": [classroom.id], "deadline": "2999-06-01T12:00:00Z"})
        assert res.status_code == 201
        sent = res.get_json()["forms"][0]
        assert sent["id"] != form["id"]
        assert sent["class_id"] == classroom.id
        assert sent["status"] == "published"
        assert sent["settings"]["deadline"].startswith("2999-06-01T12:00:00")

        notification = Notification.query.filter_by(recipient_id=student.id).one()
        assert notification.reference_id == str(sent["id"])

    def test_send_to_someone_elses_class(self, client, make_form, make_user, make_class, auth):
        form = make_form()
        other = make_class(make_user("teacher2", role="Teacher"))
        res = client.post(f"/api/forms/{form['id']}/send-to-class", json={"class_ids": [other.id]},
                          headers=auth(make_user("teacher3", role="Teacher")))
        assert res.status_code == 403
