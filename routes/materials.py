import logging
from datetime import datetime

from flask import Blueprint, jsonify, request

from models import db
from models.classes import Classroom
from models.enrolments import Enrolment
from models.materials import Material, MATERIAL_TYPES
from models.material_submissions import MaterialSubmission
from utils.helpers import is_number, parse_datetime, get_pagination
from utils.notifications import create_notification, notify_class_students
from utils.utils import login_required, role_required, current_user, can_manage_class, can_view_class

logger = logging.getLogger(__name__)

material_bp = Blueprint("materials", __name__)


def _load(material_id):
    return db.session.get(Material, material_id)

def _parse_window(data, material=None):
    opening = parse_datetime(data["opening_time"]) if "opening_time" in data else (material.opening_time if material else None)
    closing = parse_datetime(data["closing_time"]) if "closing_time" in data else (material.closing_time if material else None)
    if opening and closing and closing <= opening:
        raise ValueError("Closing time must be after opening time")
    return opening, closing

#__________________________________________________________________________________________ * Materials *__________________________________________________

@material_bp.route("", methods=["GET"])
@login_required
def list_materials():
    user = current_user()
    page, limit = get_pagination(default_limit=10)
    query = Material.query
    class_id = request.args.get("class_id", type=int)
    if class_id:
        query = query.filter_by(class_id=class_id)

    if user.is_student:
        query = query.join(Enrolment, Enrolment.class_id == Material.class_id).filter(Enrolment.student_id == user.id)
    elif not user.is_admin:
        query = query.join(Classroom, Classroom.id == Material.class_id).filter(Classroom.teacher_id == user.id)

    materials = query.order_by(Material.created_at.desc(), Material.id.desc()).all()
    if user.is_student:
        now = datetime.utcnow()
        materials = [m for m in materials if m.is_open(now)]

    total = len(materials)
    materials = materials[(page - 1) * limit: page * limit]
    return jsonify({
        "materials": [m.to_dict() for m in materials],
        "page": page,
        "limit": limit,
        "total": total,
    }), 200

@material_bp.route("", methods=["POST"])
@login_required
@role_required("Teacher", "Admin")
def create_material():
    data = request.get_json() or {}
    title = (data.get("title") or "").strip()
    material_type = data.get("type")
    content = (data.get("content") or "").strip()

    if not title or not material_type or not content or not data.get("class_id"):
        return jsonify({"error": "Required fields: title, type, content, class_id"}), 400
    if material_type not in MATERIAL_TYPES:
        return jsonify({"error": f"Type must be one of: {', '.join(MATERIAL_TYPES)}"}), 400
    try:
        opening, closing = _parse_window(data)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    user = current_user()
    classroom = db.session.get(Classroom, data.get("class_id"))
    if not classroom:
        return jsonify({"error": "Class not found"}), 404
    if not can_manage_class(classroom, user):
        return jsonify({"error": "You can only post materials to your own classes"}), 403

    material = Material(
        class_id=classroom.id,
        teacher_id=user.id,
        title=title,
        description=data.get("description"),
        type=material_type,
        content=content,
        opening_time=opening,
        closing_time=closing,
    )
    db.session.add(material)
    db.session.commit()
    logger.info("Material %s posted to class %s", material.id, classroom.id)

    notify_class_students(classroom, user, "material", f'New material posted in {classroom.name}: "{title}"', material.id)

    return jsonify({"message": "Material created successfully", "material": material.to_dict()}), 201

@material_bp.route("/<int:material_id>", methods=["GET"])
@login_required
def get_material(material_id):
    material = _load(material_id)
    if not material:
        return jsonify({"error": "Material not found"}), 404
    user = current_user()
    if not can_view_class(material.classroom, user):
        return jsonify({"error": "You are not a member of this class"}), 403
    if user.is_student and not material.is_open(datetime.utcnow()):
        return jsonify({"error": "This material is not available right now"}), 403

    return jsonify({"material": material.to_dict()}), 200

@material_bp.route("/<int:material_id>", methods=["PUT"])
@login_required
@role_required("Teacher", "Admin")
def update_material(material_id):
    material = _load(material_id)
    if not material:
        return jsonify({"error": "Material not found"}), 404
    if not can_manage_class(material.classroom, current_user()):
        return jsonify({"error": "You do not have permission to edit this material"}), 403

    data = request.get_json() or {}
    if "type" in data and data["type"] not in MATERIAL_TYPES:
        return jsonify({"error": f"Type must be one of: {', '.join(MATERIAL_TYPES)}"}), 400
    try:
        material.opening_time, material.closing_time = _parse_window(data, material)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    for field in ("title", "content"):
        if field in data:
            if not (data.get(field) or "").strip():
                return jsonify({"error": f"{field.capitalize()} can't be empty"}), 400
            setattr(material, field, data[field].strip())
    if "description" in data:
        material.description = data["description"]
    if "type" in data:
        material.type = data["type"]

    db.session.commit()
    return jsonify({"message": "Material updated successfully", "material": material.to_dict()}), 200

@material_bp.route("/<int:material_id>", methods=["DELETE"])
@login_required
@role_required("Teacher", "Admin")
def delete_material(material_id):
    material = _load(material_id)
    if not material:
        return jsonify({"error": "Material not found"}), 404
    if not can_manage_class(material.classroom, current_user()):
        return jsonify({"error": "You do not have permission to delete this material"}), 403

    db.session.delete(material)
    db.session.commit()
    return jsonify({"message": "Material deleted successfully"}), 200

#__________________________________________________________________________________________ * Submissions *__________________________________________________

@material_bp.route("/<int:material_id>/submit", methods=["POST"])
@login_required
@role_required("Student")
def submit_material(material_id):
    material = _load(material_id)
    if not material:
        return jsonify({"error": "Material not found"}), 404
    user = current_user()
    if not material.classroom.is_student(user.id):
        return jsonify({"error": "You are not enrolled in this class"}), 403
    if not material.is_open(datetime.utcnow()):
        return jsonify({"error": "This material is not accepting submissions"}), 400

    data = request.get_json() or {}
    if not data.get("file_name") or not data.get("file_path"):
        return jsonify({"error": "file_name and file_path are required"}), 400

    submission = MaterialSubmission(
        material_id=material.id,
        class_id=material.class_id,
        student_id=user.id,
        file_name=data["file_name"],
        file_path=data["file_path"],
        file_size=data.get("file_size"),
        mime_type=data.get("mime_type"),
        status="submitted",
    )
    db.session.add(submission)
    db.session.commit()

    create_notification(material.teacher, user, "material",
                        f'{user.name} submitted a response to "{material.title}"', material.id, material.class_id)

    return jsonify({"message": "Submission created successfully", "submission": submission.to_dict()}), 201

@material_bp.route("/<int:material_id>/submissions", methods=["GET"])
@login_required
@role_required("Teacher", "Admin")
def list_material_submissions(material_id):
    material = _load(material_id)
    if not material:
        return jsonify({"error": "Material not found"}), 404
    if not can_manage_class(material.classroom, current_user()):
        return jsonify({"error": "Not authorized"}), 403

    submissions = sorted(material.submissions, key=lambda s: s.submitted_at, reverse=True)
    return jsonify({"submissions": [s.to_dict() for s in submissions]}), 200

@material_bp.route("/<int:material_id>/my-submission", methods=["GET"])
@login_required
def my_material_submission(material_id):
    submission = (MaterialSubmission.query.filter_by(material_id=material_id, student_id=current_user().id)
                  .order_by(MaterialSubmission.submitted_at.desc(), MaterialSubmission.id.desc()).first())
    return jsonify({"submission": submission.to_dict() if submission else None}), 200

@material_bp.route("/<int:material_id>/submissions/<int:submission_id>/grade", methods=["PUT"])
@login_required
@role_required("Teacher", "Admin")
def grade_material_submission(material_id, submission_id):
    material = _load(material_id)
    if not material:
        return jsonify({"error": "Material not found"}), 404
    user = current_user()
    if not can_manage_class(material.classroom, user):
        return jsonify({"error": "Not authorized"}), 403

    submission = MaterialSubmission.query.filter_by(id=submission_id, material_id=material.id).first()
    if not submission:
        return jsonify({"error": "Submission not found"}), 404

    data = request.get_json() or {}
    if "score" in data:
        score = data["score"]
        if score is not None and (not is_number(score) or score < 0):
            return jsonify({"error": "Score must be a non-negative number"}), 400
        submission.score = score
    if "feedback" in data:
        submission.feedback = data["feedback"]
    submission.status = "graded"
    submission.graded_at = datetime.utcnow()
    db.session.commit()

    create_notification(submission.student, user, "material",
                        f'Your submission for "{material.title}" has been graded', material.id, material.class_id)

    return jsonify({"message": "Submission graded successfully", "submission": submission.to_dict()}), 200

@material_bp.route("/<int:material_id>/submissions/<int:submission_id>", methods=["DELETE"])
@login_required
def delete_material_submission(material_id, submission_id):
    submission = MaterialSubmission.query.filter_by(id=submission_id, material_id=material_id).first()
    if not submission:
        return jsonify({"error": "Submission not found"}), 404
    user = current_user()
    if submission.student_id != user.id and user.is_student:
        return jsonify({"error": "Not authorized to delete this submission"}), 403

    db.session.delete(submission)
    db.session.commit()
    return jsonify({"message": "Submission deleted successfully"}), 200
