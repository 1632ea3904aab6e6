import logging
from datetime import datetime

from flask import Blueprint, jsonify, request, current_app

from models import db
from models.classes import Classroom
from models.enrolments import Enrolment
from models.exams import Exam
from models.exam_submissions import ExamSubmission
from models.grades import Grade
from classes.exam_grader import ExamGrader
from sockets import push_to_class, push_to_user
from utils.helpers import is_number, parse_datetime, str_to_bool
from utils.notifications import create_notification, notify_class_students
from utils.utils import login_required, role_required, current_user, can_manage_class, can_view_class

logger = logging.getLogger(__name__)

exam_bp = Blueprint("exams", __name__)

PENDING_FEEDBACK = "Pending manual grading by teacher."


def _load(exam_id):
    return db.session.get(Exam, exam_id)

def _score_label(submission):
    return f"{submission.final_score:g}/{submission.total_questions}"

def _upsert_grade(submission, feedback=None):
    exam = submission.exam
    grade = Grade.query.filter_by(exam_id=exam.id, student_id=submission.student_id).first()
    if not grade:
        grade = Grade(class_id=exam.class_id, student_id=submission.student_id, exam_id=exam.id)
        db.session.add(grade)
    grade.grade = _score_label(submission)
    grade.feedback = feedback if feedback is not None else submission.feedback
    return grade

def _return_submission(submission, teacher):
    """Publish a graded submission's score to the student."""
    exam = submission.exam
    submission.returned = True
    submission.returned_at = datetime.utcnow()
    _upsert_grade(submission)
    db.session.commit()

    create_notification(submission.student, teacher, "grade",
                        f'Your grade for "{exam.title}" is {_score_label(submission)}',
                        exam.id, exam.class_id)
    push_to_user(submission.student.username, "grade-returned", {
        "exam_id": exam.id,
        "submission_id": submission.id,
        "final_score": submission.final_score,
        "total_questions": submission.total_questions,
    })

#__________________________________________________________________________________________ * Exams *__________________________________________________

@exam_bp.route("", methods=["GET"])
@login_required
def list_exams():
    user = current_user()
    query = Exam.query
    class_id = request.args.get("class_id", type=int)
    if class_id:
        query = query.filter_by(class_id=class_id)

    if user.is_student:
        query = query.join(Enrolment, Enrolment.class_id == Exam.class_id).filter(Enrolment.student_id == user.id)
    elif not user.is_admin:
        query = query.filter(Exam.created_by_id == user.id)

    exams = query.order_by(Exam.created_at.desc()).all()
    return jsonify({"exams": [e.to_dict(include_answers=not user.is_student) for e in exams]}), 200

@exam_bp.route("", methods=["POST"])
@login_required
@role_required("Teacher", "Admin")
def create_exam():
    data = request.get_json() or {}
    title = (data.get("title") or "").strip()
    if not title or not data.get("class_id"):
        return jsonify({"error": "Title and class are required"}), 400

    try:
        questions = ExamGrader.validate_questions(data.get("questions"))
        due_date = parse_datetime(data.get("due_date"))
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    user = current_user()
    classroom = db.session.get(Classroom, data.get("class_id"))
    if not classroom:
        return jsonify({"error": "Class not found"}), 404
    if not can_manage_class(classroom, user):
        return jsonify({"error": "You can only create exams for your own classes"}), 403

    exam = Exam(
        class_id=classroom.id,
        title=title,
        description=data.get("description"),
        due_date=due_date,
        questions=questions,
        manual_grading=str_to_bool(data.get("manual_grading", False)),
        created_by_id=user.id,
    )
    db.session.add(exam)
    db.session.commit()
    logger.info("Exam %s created in class %s (manual=%s)", exam.id, classroom.id, exam.manual_grading)

    notify_class_students(classroom, user, "exam", f'New exam in {classroom.name}: "{title}"', exam.id)
    push_to_class(classroom.id, "exam-created", exam.to_dict(include_answers=False))

    return jsonify({"message": "Exam created successfully", "exam": exam.to_dict()}), 201

@exam_bp.route("/manual", methods=["GET"])
@login_required
@role_required("Teacher", "Admin")
def list_manual_exams():
    user = current_user()
    query = Exam.query.filter_by(manual_grading=True)
    if not user.is_admin:
        query = query.filter_by(created_by_id=user.id)

    exams = []
    for exam in query.order_by(Exam.created_at.desc()).all():
        data = exam.to_dict()
        data["submission_count"] = len(exam.submissions)
        data["graded_count"] = sum(1 for s in exam.submissions if s.is_graded)
        data["returned_count"] = sum(1 for s in exam.submissions if s.returned)
        exams.append(data)
    return jsonify({"exams": exams}), 200

@exam_bp.route("/submissions/mine", methods=["GET"])
@login_required
def my_submissions():
    submissions = (ExamSubmission.query.filter_by(student_id=current_user().id)
                   .order_by(ExamSubmission.submitted_at.desc()).all())
    return jsonify({"submissions": [
        s.to_dict(hide_score=s.manual_grading and not s.returned) for s in submissions
    ]}), 200

@exam_bp.route("/<int:exam_id>", methods=["GET"])
@login_required
def get_exam(exam_id):
    exam = _load(exam_id)
    if not exam:
        return jsonify({"error": "Exam not found"}), 404
    user = current_user()
    if not can_view_class(exam.classroom, user):
        return jsonify({"error": "You are not a member of this class"}), 403

    return jsonify({"exam": exam.to_dict(include_answers=can_manage_class(exam.classroom, user))}), 200

@exam_bp.route("/<int:exam_id>", methods=["DELETE"])
@login_required
@role_required("Teacher", "Admin")
def delete_exam(exam_id):
    exam = _load(exam_id)
    if not exam:
        return jsonify({"error": "Exam not found"}), 404
    if not can_manage_class(exam.classroom, current_user()):
        return jsonify({"error": "You do not have permission to delete this exam"}), 403

    class_id = exam.class_id
    Grade.query.filter_by(exam_id=exam.id).delete()
    db.session.delete(exam)
    db.session.commit()

    push_to_class(class_id, "exam-deleted", {"exam_id": exam_id})
    return jsonify({"message": "Exam deleted successfully"}), 200

#__________________________________________________________________________________________ * Submissions *__________________________________________________

@exam_bp.route("/<int:exam_id>/submit", methods=["POST"])
@login_required
@role_required("Student")
def submit_exam(exam_id):
    exam = _load(exam_id)
    if not exam:
        return jsonify({"error": "Exam not found"}), 404

    user = current_user()
    if not exam.classroom.is_student(user.id):
        return jsonify({"error": "You are not enrolled in this class"}), 403

    now = datetime.utcnow()
    if exam.due_date and now > exam.due_date:
        return jsonify({"error": "The due date for this exam has passed"}), 400
    if ExamSubmission.query.filter_by(exam_id=exam.id, student_id=user.id).first():
        return jsonify({"error": "You have already submitted this exam"}), 400

    data = request.get_json() or {}
    answers = data.get("answers")
    if not isinstance(answers, list):
        return jsonify({"error": "Answers must be a list"}), 400

    requested = data.get("use_credit_points")
    if requested is not None and (isinstance(requested, bool) or not isinstance(requested, int) or requested < 0):
        return jsonify({"error": "use_credit_points must be a non-negative integer"}), 400

    total = exam.total_questions
    raw = ExamGrader.raw_score(exam.questions, answers)
    submission = ExamSubmission(
        exam_id=exam.id,
        student_id=user.id,
        answers=answers,
        raw_score=raw,
        total_questions=total,
        manual_grading=exam.manual_grading,
        submitted_at=now,
    )

    if exam.manual_grading:
        submission.final_score = None
        submission.feedback = PENDING_FEEDBACK
    else:
        delta = ExamGrader.timing_delta(exam.due_date, now)
        final, used, balance = ExamGrader.apply_credits(
            raw, total, user.credit_points, delta, requested,
            cap=current_app.config.get("MAX_CREDIT_POINTS", 10))
        submission.final_score = final
        submission.credits_used = used
        submission.credit_delta = delta
        submission.graded_at = now
        submission.feedback = f"Auto-graded: {raw}/{total} correct"
        if used:
            submission.feedback += f", {used} credit point(s) applied"
        user.credit_points = balance

    db.session.add(submission)
    db.session.flush()
    if not exam.manual_grading:
        _upsert_grade(submission)
    db.session.commit()
    logger.info("%s submitted exam %s (raw %s/%s)", user.username, exam.id, raw, total)

    if exam.manual_grading:
        create_notification(user, None, "exam", f'Your answers for "{exam.title}" were received and await grading',
                            exam.id, exam.class_id)
    else:
        create_notification(user, None, "grade", f'You scored {_score_label(submission)} on "{exam.title}"',
                            exam.id, exam.class_id)
    create_notification(exam.created_by, user, "exam", f'{user.name} submitted "{exam.title}"',
                        exam.id, exam.class_id)
    push_to_class(exam.class_id, "exam-submitted", {"exam_id": exam.id, "student": user.username})

    return jsonify({
        "message": "Exam submitted successfully",
        "submission": submission.to_dict(hide_score=exam.manual_grading),
        "credit_points": user.credit_points,
    }), 201

@exam_bp.route("/<int:exam_id>/submission-status", methods=["GET"])
@login_required
def submission_status(exam_id):
    submission = ExamSubmission.query.filter_by(exam_id=exam_id, student_id=current_user().id).first()
    if not submission:
        return jsonify({"submitted": False}), 200
    return jsonify({
        "submitted": True,
        "submission": submission.to_dict(hide_score=submission.manual_grading and not submission.returned),
    }), 200

@exam_bp.route("/<int:exam_id>/submissions", methods=["GET"])
@login_required
@role_required("Teacher", "Admin")
def list_exam_submissions(exam_id):
    exam = _load(exam_id)
    if not exam:
        return jsonify({"error": "Exam not found"}), 404
    if not can_manage_class(exam.classroom, current_user()):
        return jsonify({"error": "You do not have permission to view these submissions"}), 403

    return jsonify({
        "exam": exam.to_dict(),
        "submissions": [s.to_dict() for s in exam.submissions],
    }), 200

#__________________________________________________________________________________________ * Manual grading *__________________________________________________

@exam_bp.route("/submissions/<int:submission_id>/grade", methods=["PUT"])
@login_required
@role_required("Teacher", "Admin")
def grade_exam_submission(submission_id):
    submission = db.session.get(ExamSubmission, submission_id)
    if not submission:
        return jsonify({"error": "Submission not found"}), 404
    if not can_manage_class(submission.exam.classroom, current_user()):
        return jsonify({"error": "You do not have permission to grade this submission"}), 403

    data = request.get_json() or {}
    final_score = data.get("final_score")
    if not is_number(final_score):
        return jsonify({"error": "final_score must be a number"}), 400
    if final_score < 0 or final_score > submission.total_questions:
        return jsonify({"error": f"final_score must be between 0 and {submission.total_questions}"}), 400

    submission.final_score = final_score
    submission.feedback = data.get("feedback") or None
    submission.graded_at = datetime.utcnow()
    submission.returned = False
    submission.returned_at = None
    db.session.commit()
    logger.info("Exam submission %s graded %s", submission.id, _score_label(submission))

    return jsonify({"message": "Submission graded", "submission": submission.to_dict()}), 200

@exam_bp.route("/submissions/<int:submission_id>/return", methods=["POST"])
@login_required
@role_required("Teacher", "Admin")
def return_exam_submission(submission_id):
    submission = db.session.get(ExamSubmission, submission_id)
    if not submission:
        return jsonify({"error": "Submission not found"}), 404
    user = current_user()
    if not can_manage_class(submission.exam.classroom, user):
        return jsonify({"error": "You do not have permission to return this submission"}), 403
    if not submission.is_graded:
        return jsonify({"error": "Grade the submission before returning it"}), 400

    _return_submission(submission, user)
    return jsonify({"message": "Submission returned", "submission": submission.to_dict()}), 200

@exam_bp.route("/<int:exam_id>/return-all", methods=["POST"])
@login_required
@role_required("Teacher", "Admin")
def return_all_submissions(exam_id):
    exam = _load(exam_id)
    if not exam:
        return jsonify({"error": "Exam not found"}), 404
    user = current_user()
    if not can_manage_class(exam.classroom, user):
        return jsonify({"error": "You do not have permission to return these submissions"}), 403

    pending = [s for s in exam.submissions if s.is_graded and not s.returned]
    for submission in pending:
        _return_submission(submission, user)

    ungraded = sum(1 for s in exam.submissions if not s.is_graded)
    if ungraded == 0 and exam.submissions:
        exam.returned = True
        db.session.commit()

    return jsonify({
        "message": f"Returned {len(pending)} submission(s)",
        "returned_count": len(pending),
        "ungraded_count": ungraded,
    }), 200
