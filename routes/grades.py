import csv
import io
import logging
from datetime import datetime

from flask import Blueprint, jsonify, request, Response

from models import db
from models.classes import Classroom
from models.exams import Exam
from models.grades import Grade
from models.users import User
from utils.notifications import create_notification
from utils.utils import login_required, role_required, current_user, can_manage_class

logger = logging.getLogger(__name__)

grade_bp = Blueprint("grades", __name__)

EXPORT_COLUMNS = ["Class ID", "Class", "Section", "Course", "Student", "Grade", "Feedback",
                  "Exam ID", "Exam Title", "Created At"]
IMPORT_COLUMNS = ("Class ID", "Student", "Grade")


@grade_bp.route("", methods=["GET"])
@login_required
def list_grades():
    user = current_user()
    query = Grade.query
    class_id = request.args.get("class_id", type=int)
    if class_id:
        query = query.filter_by(class_id=class_id)

    if user.is_student:
        query = query.filter_by(student_id=user.id)
    elif not user.is_admin:
        query = query.join(Classroom, Classroom.id == Grade.class_id).filter(Classroom.teacher_id == user.id)

    grades = query.order_by(Grade.created_at.desc(), Grade.id.desc()).all()
    return jsonify({"grades": [g.to_dict() for g in grades]}), 200

@grade_bp.route("", methods=["POST"])
@login_required
@role_required("Teacher", "Admin")
def create_grade():
    data = request.get_json() or {}
    grade_value = str(data.get("grade") or "").strip()
    if not data.get("class_id") or not data.get("student") or not grade_value:
        return jsonify({"error": "Class, student and grade are required"}), 400

    user = current_user()
    classroom = db.session.get(Classroom, data.get("class_id"))
    if not classroom:
        return jsonify({"error": "Class not found"}), 404
    if not can_manage_class(classroom, user):
        return jsonify({"error": "You can only grade students in your own classes"}), 403

    student = User.query.filter_by(username=data.get("student")).first()
    if not student or not classroom.is_student(student.id):
        return jsonify({"error": "Student is not enrolled in this class"}), 400

    grade = Grade(class_id=classroom.id, student_id=student.id, grade=grade_value, feedback=data.get("feedback"))
    db.session.add(grade)
    db.session.commit()
    logger.info("Grade %s recorded for %s in class %s", grade.id, student.username, classroom.id)

    create_notification(student, user, "grade", f"You received a grade of {grade_value} in {classroom.name}",
                        grade.id, classroom.id)

    return jsonify({"message": "Grade recorded", "grade": grade.to_dict()}), 201

@grade_bp.route("/<int:grade_id>", methods=["DELETE"])
@login_required
@role_required("Teacher", "Admin")
def delete_grade(grade_id):
    grade = db.session.get(Grade, grade_id)
    if not grade:
        return jsonify({"error": "Grade not found"}), 404
    if not can_manage_class(grade.classroom, current_user()):
        return jsonify({"error": "You do not have permission to delete this grade"}), 403

    db.session.delete(grade)
    db.session.commit()
    return jsonify({"message": "Grade deleted"}), 200

#__________________________________________________________________________________________ * CSV export / import *__________________________________________________

@grade_bp.route("/export", methods=["GET"])
@login_required
@role_required("Teacher", "Admin")
def export_grades():
    user = current_user()
    query = Grade.query.join(Classroom, Classroom.id == Grade.class_id).join(User, User.id == Grade.student_id)
    class_id = request.args.get("class_id", type=int)
    if class_id:
        classroom = db.session.get(Classroom, class_id)
        if not classroom:
            return jsonify({"error": "Class not found"}), 404
        if not can_manage_class(classroom, user):
            return jsonify({"error": "You are not authorized to export grades for this class"}), 403
        query = query.filter(Grade.class_id == classroom.id)
        filename = f"grades-{classroom.id}-{datetime.utcnow():%Y%m%d%H%M%S}.csv"
    else:
        if not user.is_admin:
            query = query.filter(Classroom.teacher_id == user.id)
        filename = f"grades-all-{datetime.utcnow():%Y%m%d%H%M%S}.csv"

    grades = query.order_by(Classroom.name.asc(), User.username.asc(), Grade.id.asc()).all()

    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(EXPORT_COLUMNS)
    for grade in grades:
        classroom = grade.classroom
        writer.writerow([
            classroom.id,
            classroom.name,
            classroom.section or "",
            classroom.course or "",
            grade.student.username,
            grade.grade,
            grade.feedback or "",
            grade.exam_id or "",
            grade.exam.title if grade.exam else "",
            grade.created_at.isoformat() if grade.created_at else "",
        ])

    logger.info("%s exported %d grades", user.username, len(grades))
    return Response(
        output.getvalue(),
        mimetype="text/csv",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )

def _import_row(row, user, classes):
    try:
        class_id = int((row.get("Class ID") or "").strip())
    except ValueError:
        return None, "Class ID must be a number"
    username = (row.get("Student") or "").strip()
    grade_value = (row.get("Grade") or "").strip()
    if not username or not grade_value:
        return None, "Student and grade are required"
    if len(grade_value) > 50:
        return None, "Grade must be at most 50 characters"

    if class_id not in classes:
        classes[class_id] = db.session.get(Classroom, class_id)
    classroom = classes[class_id]
    if not classroom:
        return None, f"Class {class_id} not found"
    if not can_manage_class(classroom, user):
        return None, f"Not authorized to import grades for class {class_id}"

    student = User.query.filter_by(username=username).first()
    if not student or not classroom.is_student(student.id):
        return None, f'Student "{username}" not in class {class_id}'

    exam_id = (row.get("Exam ID") or "").strip() or None
    if exam_id is not None:
        try:
            exam_id = int(exam_id)
        except ValueError:
            return None, "Exam ID must be a number"
        exam = db.session.get(Exam, exam_id)
        if not exam or exam.class_id != classroom.id:
            return None, f"Exam {exam_id} not found in class {class_id}"

    grade = Grade.query.filter_by(class_id=classroom.id, student_id=student.id, exam_id=exam_id).first()
    if grade is None:
        grade = Grade(class_id=classroom.id, student_id=student.id, exam_id=exam_id, grade=grade_value)
        db.session.add(grade)
    grade.grade = grade_value
    grade.feedback = (row.get("Feedback") or "").strip() or None
    return grade, None

@grade_bp.route("/import", methods=["POST"])
@login_required
@role_required("Teacher", "Admin")
def import_grades():
    """Create or update grades from a CSV in the export layout.

    Rows match existing grades on class, student and exam.
    """
    file = request.files.get("file")
    if not file:
        return jsonify({"error": "A CSV file is required"}), 400
    if not (file.filename or "").lower().endswith(".csv"):
        return jsonify({"error": "Only CSV files are allowed"}), 400

    try:
        decoded = file.read().decode("utf-8-sig").splitlines()
    except UnicodeDecodeError:
        return jsonify({"error": "File must be UTF-8 encoded"}), 400

    reader = csv.DictReader(decoded)
    missing = [c for c in IMPORT_COLUMNS if c not in (reader.fieldnames or [])]
    if missing:
        return jsonify({"error": f"Missing columns: {', '.join(missing)}"}), 400

    user = current_user()
    classes = {}
    imported, errors = [], []
    for line, row in enumerate(reader, start=2):
        if not any((value or "").strip() for value in row.values() if isinstance(value, str)):
            continue
        grade, error = _import_row(row, user, classes)
        if error:
            errors.append({"line": line, "error": error})
            continue
        db.session.flush()
        imported.append(grade)

    db.session.commit()
    logger.info("%s imported %d grades (%d rejected)", user.username, len(imported), len(errors))
    return jsonify({
        "message": f"Imported {len(imported)} grades",
        "imported": len(imported),
        "grades": [g.to_dict() for g in imported],
        "errors": errors,
    }), 200 if imported else 400
