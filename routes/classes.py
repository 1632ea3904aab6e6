import logging
from flask import Blueprint, jsonify, request

from models import db
from models.classes import Classroom
from models.enrolments import Enrolment
from models.users import User
from classes.enrolment_manager import EnrolmentManager, EnrolmentError
from sockets import push_to_user
from utils.utils import login_required, role_required, current_user, can_manage_class, can_view_class

logger = logging.getLogger(__name__)

class_bp = Blueprint("classes", __name__)

EDITABLE_FIELDS = ("name", "section", "course", "year", "bg")


def _load_class(class_id):
    return db.session.get(Classroom, class_id)

#__________________________________________________________________________________________ * Classes *__________________________________________________

@class_bp.route("", methods=["GET"])
@login_required
def list_classes():
    user = current_user()
    if user.is_admin:
        classes = Classroom.query.order_by(Classroom.created_at.desc()).all()
    elif user.is_student:
        classes = (Classroom.query.join(Enrolment, Enrolment.class_id == Classroom.id)
                   .filter(Enrolment.student_id == user.id)
                   .order_by(Classroom.created_at.desc()).all())
    else:
        classes = Classroom.query.filter_by(teacher_id=user.id).order_by(Classroom.created_at.desc()).all()

    return jsonify({"classes": [c.to_dict() for c in classes]}), 200

@class_bp.route("", methods=["POST"])
@login_required
@role_required("Teacher", "Admin")
def create_class():
    data = request.get_json() or {}
    name = (data.get("name") or "").strip()
    if not name:
        return jsonify({"error": "Class name is required"}), 400

    try:
        code = EnrolmentManager.generate_code()
    except EnrolmentError as e:
        return jsonify({"error": str(e)}), 500

    user = current_user()
    classroom = Classroom(
        name=name,
        section=data.get("section"),
        course=data.get("course"),
        year=data.get("year"),
        bg=data.get("bg") or "#FFF0D8",
        code=code,
        teacher_id=user.id,
    )
    db.session.add(classroom)
    db.session.commit()
    logger.info("%s created class %s (%s)", user.username, classroom.id, classroom.code)

    return jsonify({"message": "Class created successfully", "class": classroom.to_dict()}), 201

@class_bp.route("/<int:class_id>", methods=["GET"])
@login_required
def get_class(class_id):
    classroom = _load_class(class_id)
    if not classroom:
        return jsonify({"error": "Class not found"}), 404
    user = current_user()
    if not can_view_class(classroom, user):
        return jsonify({"error": "You are not a member of this class"}), 403

    return jsonify({"class": classroom.to_dict(include_students=can_manage_class(classroom, user))}), 200

@class_bp.route("/<int:class_id>", methods=["PUT"])
@login_required
def update_class(class_id):
    classroom = _load_class(class_id)
    if not classroom:
        return jsonify({"error": "Class not found"}), 404
    if not can_manage_class(classroom, current_user()):
        return jsonify({"error": "Only the class teacher can edit this class"}), 403

    data = request.get_json() or {}
    for field in EDITABLE_FIELDS:
        if field in data:
            setattr(classroom, field, data[field])
    if not (classroom.name or "").strip():
        return jsonify({"error": "Class name is required"}), 400

    db.session.commit()
    return jsonify({"message": "Class updated successfully", "class": classroom.to_dict()}), 200

@class_bp.route("/<int:class_id>", methods=["DELETE"])
@login_required
def delete_class(class_id):
    classroom = _load_class(class_id)
    if not classroom:
        return jsonify({"error": "Class not found"}), 404
    if not can_manage_class(classroom, current_user()):
        return jsonify({"error": "Only the class teacher can delete this class"}), 403

    db.session.delete(classroom)
    db.session.commit()
    logger.info("Class %s deleted by %s", class_id, current_user().username)
    return jsonify({"message": "Class deleted successfully"}), 200

#__________________________________________________________________________________________ * Enrolment *__________________________________________________

@class_bp.route("/join", methods=["POST"])
@login_required
@role_required("Student")
def join_class():
    code = (request.get_json() or {}).get("code")
    if not code:
        return jsonify({"error": "Class code is required"}), 400

    try:
        classroom = EnrolmentManager.join_by_code(code, current_user())
    except EnrolmentError as e:
        return jsonify({"error": str(e)}), 400
    if not classroom:
        return jsonify({"error": "No class found with that code"}), 404

    return jsonify({"message": f"Joined {classroom.name}", "class": classroom.to_dict()}), 200

@class_bp.route("/<int:class_id>/leave", methods=["POST"])
@login_required
def leave_class(class_id):
    classroom = _load_class(class_id)
    if not classroom:
        return jsonify({"error": "Class not found"}), 404
    if not EnrolmentManager.unenroll_student(classroom, current_user()):
        return jsonify({"error": "You are not enrolled in this class"}), 400

    return jsonify({"message": f"Left {classroom.name}"}), 200

@class_bp.route("/<int:class_id>/students/<username>", methods=["DELETE"])
@login_required
def remove_student(class_id, username):
    classroom = _load_class(class_id)
    if not classroom:
        return jsonify({"error": "Class not found"}), 404
    if not can_manage_class(classroom, current_user()):
        return jsonify({"error": "Only the class teacher can remove students"}), 403

    student = User.query.filter_by(username=username).first()
    if not student or not EnrolmentManager.unenroll_student(classroom, student):
        return jsonify({"error": "Student is not enrolled in this class"}), 404

    push_to_user(student.username, "removed-from-class", {"class_id": classroom.id, "class_name": classroom.name})
    return jsonify({"message": f"Removed {username} from {classroom.name}"}), 200

@class_bp.route("/<int:class_id>/students", methods=["GET"])
@login_required
def list_students(class_id):
    classroom = _load_class(class_id)
    if not classroom:
        return jsonify({"error": "Class not found"}), 404
    if not can_view_class(classroom, current_user()):
        return jsonify({"error": "You are not a member of this class"}), 403

    students = sorted(classroom.students, key=lambda s: s.name.lower())
    return jsonify({"students": [s.to_dict() for s in students]}), 200

@class_bp.route("/<int:class_id>/people", methods=["GET"])
@login_required
def list_people(class_id):
    classroom = _load_class(class_id)
    if not classroom:
        return jsonify({"error": "Class not found"}), 404
    if not can_view_class(classroom, current_user()):
        return jsonify({"error": "You are not a member of this class"}), 403

    students = sorted(classroom.students, key=lambda s: s.name.lower())
    return jsonify({
        "teacher": classroom.teacher.to_dict() if classroom.teacher else None,
        "students": [{"username": s.username, "name": s.name} for s in students],
    }), 200
