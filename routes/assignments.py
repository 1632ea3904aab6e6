import logging
from datetime import datetime

from flask import Blueprint, jsonify, request

from models import db
from models.assignment import Assignment
from models.assignment_submission import AssignmentSubmission
from models.classes import Classroom
from models.enrolments import Enrolment
from sockets import push_to_class
from utils.helpers import is_number, parse_datetime, str_to_bool
from utils.notifications import create_notification, notify_class_students
from utils.utils import login_required, role_required, current_user, can_manage_class, can_view_class

logger = logging.getLogger(__name__)

assignment_bp = Blueprint("assignments", __name__)


def _load(assignment_id):
    return db.session.get(Assignment, assignment_id)

#__________________________________________________________________________________________ * Assignments *__________________________________________________

@assignment_bp.route("", methods=["GET"])
@login_required
def list_assignments():
    user = current_user()
    query = Assignment.query
    class_id = request.args.get("class_id", type=int)
    if class_id:
        query = query.filter_by(class_id=class_id)

    if user.is_student:
        query = query.join(Enrolment, Enrolment.class_id == Assignment.class_id).filter(Enrolment.student_id == user.id)
    elif not user.is_admin:
        query = query.join(Classroom, Classroom.id == Assignment.class_id).filter(Classroom.teacher_id == user.id)

    assignments = query.order_by(Assignment.due_date.asc()).all()
    return jsonify({"assignments": [a.to_dict() for a in assignments]}), 200

@assignment_bp.route("", methods=["POST"])
@login_required
@role_required("Teacher", "Admin")
def create_assignment():
    data = request.get_json() or {}
    title = (data.get("title") or "").strip()
    class_id = data.get("class_id")

    if not class_id or not title or not data.get("due_date"):
        return jsonify({"error": "Class, title and due date are required"}), 400

    try:
        due_date = parse_datetime(data.get("due_date"))
        points = int(data.get("points_possible", 100))
    except (TypeError, ValueError):
        return jsonify({"error": "Invalid due date or points"}), 400
    if points <= 0:
        return jsonify({"error": "Points must be positive"}), 400

    user = current_user()
    classroom = db.session.get(Classroom, class_id)
    if not classroom:
        return jsonify({"error": "Class not found"}), 404
    if not can_manage_class(classroom, user):
        return jsonify({"error": "You can only add assignments to your own classes"}), 403

    assignment = Assignment(
        class_id=classroom.id,
        title=title,
        description=data.get("description"),
        due_date=due_date,
        points_possible=points,
        allow_late_submissions=str_to_bool(data.get("allow_late_submissions", False)),
        created_by_id=user.id,
    )
    db.session.add(assignment)
    db.session.commit()
    logger.info("Assignment %s created in class %s", assignment.id, classroom.id)

    notify_class_students(classroom, user, "assignment",
                          f'New assignment in {classroom.name}: "{title}"', assignment.id)
    push_to_class(classroom.id, "assignment-created", assignment.to_dict())

    return jsonify({"message": "Assignment created successfully", "assignment": assignment.to_dict()}), 201

@assignment_bp.route("/<int:assignment_id>", methods=["GET"])
@login_required
def get_assignment(assignment_id):
    assignment = _load(assignment_id)
    if not assignment:
        return jsonify({"error": "Assignment not found"}), 404
    if not can_view_class(assignment.classroom, current_user()):
        return jsonify({"error": "You are not a member of this class"}), 403
    return jsonify({"assignment": assignment.to_dict()}), 200

@assignment_bp.route("/<int:assignment_id>", methods=["PUT"])
@login_required
@role_required("Teacher", "Admin")
def update_assignment(assignment_id):
    assignment = _load(assignment_id)
    if not assignment:
        return jsonify({"error": "Assignment not found"}), 404
    if not can_manage_class(assignment.classroom, current_user()):
        return jsonify({"error": "You do not have permission to edit this assignment"}), 403

    data = request.get_json() or {}
    try:
        if "due_date" in data:
            due_date = parse_datetime(data["due_date"])
            if not due_date:
                return jsonify({"error": "Due date is required"}), 400
            assignment.due_date = due_date
        if "points_possible" in data:
            assignment.points_possible = int(data["points_possible"])
    except (TypeError, ValueError):
        return jsonify({"error": "Invalid due date or points"}), 400

    if "title" in data:
        if not (data.get("title") or "").strip():
            return jsonify({"error": "Title can't be empty"}), 400
        assignment.title = data["title"].strip()
    if "description" in data:
        assignment.description = data["description"]
    if "allow_late_submissions" in data:
        assignment.allow_late_submissions = str_to_bool(data["allow_late_submissions"])

    db.session.commit()
    return jsonify({"message": "Assignment updated successfully", "assignment": assignment.to_dict()}), 200

@assignment_bp.route("/<int:assignment_id>", methods=["DELETE"])
@login_required
@role_required("Teacher", "Admin")
def delete_assignment(assignment_id):
    assignment = _load(assignment_id)
    if not assignment:
        return jsonify({"error": "Assignment not found"}), 404
    if not can_manage_class(assignment.classroom, current_user()):
        return jsonify({"error": "You do not have permission to delete this assignment"}), 403

    db.session.delete(assignment)
    db.session.commit()
    return jsonify({"message": "Assignment deleted successfully"}), 200

#__________________________________________________________________________________________ * Submissions *__________________________________________________

@assignment_bp.route("/<int:assignment_id>/submit", methods=["POST"])
@login_required
@role_required("Student")
def submit_assignment(assignment_id):
    assignment = _load(assignment_id)
    if not assignment:
        return jsonify({"error": "Assignment not found"}), 404

    user = current_user()
    if not assignment.classroom.is_student(user.id):
        return jsonify({"error": "You are not enrolled in this class"}), 403

    data = request.get_json() or {}
    file_url = (data.get("file_url") or "").strip()
    if not file_url:
        return jsonify({"error": "file_url is required"}), 400

    now = datetime.utcnow()
    late = now > assignment.due_date
    if late and not assignment.allow_late_submissions:
        return jsonify({"error": "The due date for this assignment has passed"}), 400

    submission = AssignmentSubmission.query.filter_by(assignment_id=assignment.id, student_id=user.id).first()
    if submission and submission.status == "graded":
        return jsonify({"error": "This submission has already been graded"}), 400
    if not submission:
        submission = AssignmentSubmission(assignment_id=assignment.id, student_id=user.id)
        db.session.add(submission)

    submission.file_url = file_url
    submission.file_name = data.get("file_name")
    submission.submitted_at = now
    submission.status = "late" if late else "submitted"
    db.session.commit()

    create_notification(assignment.created_by, user, "assignment",
                        f'{user.name} submitted "{assignment.title}"', assignment.id, assignment.class_id)

    return jsonify({"message": "Assignment submitted successfully", "submission": submission.to_dict()}), 201

@assignment_bp.route("/<int:assignment_id>/submissions", methods=["GET"])
@login_required
@role_required("Teacher", "Admin")
def list_submissions(assignment_id):
    assignment = _load(assignment_id)
    if not assignment:
        return jsonify({"error": "Assignment not found"}), 404
    if not can_manage_class(assignment.classroom, current_user()):
        return jsonify({"error": "You do not have permission to view these submissions"}), 403

    return jsonify({"submissions": [s.to_dict() for s in assignment.submissions]}), 200

@assignment_bp.route("/<int:assignment_id>/my-submission", methods=["GET"])
@login_required
def my_submission(assignment_id):
    submission = AssignmentSubmission.query.filter_by(
        assignment_id=assignment_id, student_id=current_user().id).first()
    return jsonify({"submission": submission.to_dict() if submission else None}), 200

@assignment_bp.route("/<int:assignment_id>/submissions/<int:submission_id>/grade", methods=["PUT"])
@login_required
@role_required("Teacher", "Admin")
def grade_submission(assignment_id, submission_id):
    assignment = _load(assignment_id)
    if not assignment:
        return jsonify({"error": "Assignment not found"}), 404
    user = current_user()
    if not can_manage_class(assignment.classroom, user):
        return jsonify({"error": "You do not have permission to grade this assignment"}), 403

    submission = AssignmentSubmission.query.filter_by(id=submission_id, assignment_id=assignment.id).first()
    if not submission:
        return jsonify({"error": "Submission not found"}), 404

    data = request.get_json() or {}
    score = data.get("score")
    if not is_number(score):
        return jsonify({"error": "Score must be a number"}), 400
    if score < 0 or score > assignment.points_possible:
        return jsonify({"error": f"Score must be between 0 and {assignment.points_possible}"}), 400

    submission.score = score
    submission.feedback = data.get("feedback", submission.feedback)
    submission.status = "graded"
    submission.graded_at = datetime.utcnow()
    db.session.commit()
    logger.info("Submission %s graded %s/%s", submission.id, score, assignment.points_possible)

    create_notification(submission.student, user, "grade",
                        f'Your submission for "{assignment.title}" was graded: {score:g}/{assignment.points_possible}',
                        assignment.id, assignment.class_id)

    return jsonify({"message": "Submission graded successfully", "submission": submission.to_dict()}), 200
