import logging
from flask import Blueprint, jsonify, request, current_app

from models import db
from models.classes import Classroom
from models.exams import Exam
from models.users import User
from classes.class_analytics import ClassAnalytics
from utils.utils import login_required, role_required, current_user, can_manage_class

logger = logging.getLogger(__name__)

analytics_bp = Blueprint("analytics", __name__)


def _managed_class(class_id):
    classroom = db.session.get(Classroom, class_id)
    if not classroom:
        return None, (jsonify({"error": "Class not found"}), 404)
    if not can_manage_class(classroom, current_user()):
        return None, (jsonify({"error": "You are not authorized to view analytics for this class"}), 403)
    return classroom, None


@analytics_bp.route("/class/<int:class_id>", methods=["GET"])
@login_required
@role_required("Teacher", "Admin")
def class_analytics(class_id):
    classroom, error = _managed_class(class_id)
    if error:
        return error
    overview = ClassAnalytics.class_overview(classroom, current_app.config.get("PASSING_PERCENTAGE", 60))
    return jsonify({"analytics": overview}), 200

@analytics_bp.route("/engagement/<int:class_id>", methods=["GET"])
@login_required
@role_required("Teacher", "Admin")
def engagement_analytics(class_id):
    classroom, error = _managed_class(class_id)
    if error:
        return error
    days = min(max(request.args.get("days", 30, type=int), 1), 365)
    return jsonify({"analytics": ClassAnalytics.engagement(classroom, days)}), 200

@analytics_bp.route("/exam/<int:exam_id>", methods=["GET"])
@login_required
@role_required("Teacher", "Admin")
def exam_analytics(exam_id):
    exam = db.session.get(Exam, exam_id)
    if not exam:
        return jsonify({"error": "Exam not found"}), 404
    if not can_manage_class(exam.classroom, current_user()):
        return jsonify({"error": "You are not authorized to view analytics for this exam"}), 403
    return jsonify({"analytics": ClassAnalytics.exam_report(exam)}), 200

@analytics_bp.route("/student/<username>", methods=["GET"])
@login_required
def student_analytics(username):
    user = current_user()
    if user.is_student and user.username != username:
        return jsonify({"error": "You can only view your own analytics"}), 403

    student = User.query.filter_by(username=username).first()
    if not student:
        return jsonify({"error": "Student not found"}), 404

    class_id = request.args.get("class_id", type=int)
    if class_id:
        classroom = db.session.get(Classroom, class_id)
        if not classroom:
            return jsonify({"error": "Class not found"}), 404
        if not (can_manage_class(classroom, user) or user.id == student.id):
            return jsonify({"error": "You are not authorized to view this student's analytics"}), 403
        class_ids = [classroom.id]
    elif user.is_admin or user.id == student.id:
        class_ids = None
    else:
        class_ids = [c.id for c in Classroom.query.filter_by(teacher_id=user.id).all()]

    report = ClassAnalytics.student_report(student, class_ids, visible_only=user.id == student.id)
    return jsonify({"analytics": report}), 200
