import copy
import logging
import random
from datetime import datetime

from flask import Blueprint, jsonify, request, current_app, Response
from werkzeug.utils import secure_filename

from models import db
from models.classes import Classroom
from models.enrolments import Enrolment
from models.forms import Form, FORM_STATUSES, TEMPLATE_CATEGORIES
from models.form_responses import FormResponse
from models.users import User
from classes.form_analytics import FormAnalytics
from classes.form_grader import FormGrader, GradingError
from sockets import push_to_class, push_to_user
from utils.helpers import (
    is_number, normalize_form_settings, parse_datetime, str_to_bool, validate_questions,
)
from utils.notifications import create_notification, notify_class_students
from utils.utils import (
    login_required, role_required, current_user, optional_user, can_manage_class,
)

logger = logging.getLogger(__name__)

form_bp = Blueprint("forms", __name__)

ANSWER_KEYS = ("correct_answer", "enumeration_answers", "matching_pairs")
SHUFFLABLE_TYPES = ("multiple_choice", "checkboxes", "dropdown")


def _load(form_id):
    return db.session.get(Form, form_id)

def _can_edit(form, user):
    return user is not None and (user.is_admin or form.can_edit(user.username))

def _enrolled_class_ids(user):
    return {e.class_id for e in Enrolment.query.filter_by(student_id=user.id).all()}

def _can_respond(form, user):
    """Whether a non-editor may see and answer a published form."""
    settings = form.effective_settings
    if not settings["require_login"]:
        return True
    if user is None:
        return False
    if form.class_id is None:
        return True
    return form.class_id in _enrolled_class_ids(user)

def _with_availability(data, form):
    data["availability_status"] = FormGrader.availability(form.effective_settings)
    return data

def _respondent_view(form, user):
    """Form as a respondent sees it: no answer keys, stable per-user shuffling."""
    settings = form.effective_settings
    rng = random.Random(f"{form.id}:{user.username if user else 'anonymous'}")

    questions = []
    for question in sorted(form.questions or [], key=lambda q: q.get("order", 0)):
        visible = {k: v for k, v in question.items() if k not in ANSWER_KEYS}
        pairs = question.get("matching_pairs") or []
        if pairs:
            visible["matching_left"] = [pair.get("left") for pair in pairs]
            options = [pair.get("right") for pair in pairs]
            rng.shuffle(options)
            visible["matching_options"] = options
        if settings["shuffle_answers"] and visible.get("type") in SHUFFLABLE_TYPES and visible.get("options"):
            options = list(visible["options"])
            rng.shuffle(options)
            visible["options"] = options
        questions.append(visible)

    if settings["shuffle_questions"]:
        rng.shuffle(questions)

    data = form.to_dict()
    data["questions"] = questions
    data["collaborators"] = []
    return _with_availability(data, form)

def _apply_form_fields(form, data, user):
    """Copy editable fields from a request body onto a form. Raises ValueError."""
    if "title" in data:
        title = (data.get("title") or "").strip()
        if not title:
            raise ValueError("Title is required")
        form.title = title
    if "description" in data:
        form.description = data.get("description")
    if "questions" in data:
        form.questions = validate_questions(data.get("questions") or [])
    if "sections" in data:
        sections = data.get("sections") or []
        if not isinstance(sections, list):
            raise ValueError("Sections must be a list")
        form.sections = sections
    if "exam_header" in data:
        header = data.get("exam_header")
        if header is not None and not isinstance(header, dict):
            raise ValueError("Exam header must be an object")
        form.exam_header = header
    if "settings" in data:
        form.settings = normalize_form_settings(data.get("settings"), form.settings)
    if "theme" in data:
        theme = data.get("theme") or {}
        if not isinstance(theme, dict):
            raise ValueError("Theme must be an object")
        form.theme = theme
    if "status" in data:
        if data["status"] not in FORM_STATUSES:
            raise ValueError(f"Status must be one of: {', '.join(FORM_STATUSES)}")
        form.status = data["status"]
    if "is_template" in data:
        form.is_template = str_to_bool(data["is_template"])
    if "template_category" in data:
        category = data.get("template_category")
        if category is not None and category not in TEMPLATE_CATEGORIES:
            raise ValueError(f"Template category must be one of: {', '.join(TEMPLATE_CATEGORIES)}")
        form.template_category = category
    if "class_id" in data:
        class_id = data.get("class_id")
        if class_id is None:
            form.class_id = None
        else:
            classroom = db.session.get(Classroom, class_id)
            if not classroom:
                raise LookupError("Class not found")
            if not can_manage_class(classroom, user):
                raise PermissionError("You can only attach forms to your own classes")
            form.class_id = classroom.id

def _copy_form(source, owner, **overrides):
    form = Form(
        title=source.title,
        description=source.description,
        owner_id=owner.id,
        class_id=source.class_id,
        collaborators=[],
        questions=copy.deepcopy(source.questions or []),
        sections=copy.deepcopy(source.sections or []),
        exam_header=copy.deepcopy(source.exam_header),
        settings=copy.deepcopy(source.effective_settings),
        theme=copy.deepcopy(source.theme or {}),
        is_template=False,
        template_category=None,
        status="draft",
        response_count=0,
    )
    for key, value in overrides.items():
        setattr(form, key, value)
    return form

def _save_form_changes(form, data, user, status=200, message="Form saved"):
    try:
        _apply_form_fields(form, data, user)
    except LookupError as e:
        db.session.rollback()
        return jsonify({"error": str(e)}), 404
    except PermissionError as e:
        db.session.rollback()
        return jsonify({"error": str(e)}), 403
    except ValueError as e:
        db.session.rollback()
        return jsonify({"error": str(e)}), 400
    db.session.commit()
    return jsonify({"message": message, "form": _with_availability(form.to_dict(), form)}), status

#__________________________________________________________________________________________ * Forms *__________________________________________________

@form_bp.route("", methods=["GET"])
@login_required
def list_forms():
    user = current_user()
    forms = Form.query.filter_by(is_template=False).order_by(Form.updated_at.desc(), Form.id.desc()).all()

    if user.is_student:
        class_ids = _enrolled_class_ids(user)
        visible = [
            f for f in forms
            if f.status == "published"
            and (f.class_id in class_ids or not f.effective_settings["require_login"])
        ]
        return jsonify({"forms": [_respondent_view(f, user) for f in visible]}), 200

    visible = [f for f in forms if f.can_edit(user.username)]
    return jsonify({"forms": [_with_availability(f.to_dict(), f) for f in visible]}), 200

@form_bp.route("", methods=["POST"])
@login_required
@role_required("Teacher", "Admin")
def create_form():
    data = request.get_json() or {}
    if not (data.get("title") or "").strip():
        return jsonify({"error": "Title is required"}), 400

    user = current_user()
    form = Form(
        title=data["title"].strip(),
        owner_id=user.id,
        collaborators=[],
        questions=[],
        sections=[],
        settings=normalize_form_settings({}),
        theme={},
    )
    db.session.add(form)
    response = _save_form_changes(form, data, user, status=201, message="Form created successfully")
    if response[1] == 201:
        logger.info("%s created form %s", user.username, form.id)
    return response

@form_bp.route("/templates", methods=["GET"])
@login_required
@role_required("Teacher", "Admin")
def list_templates():
    query = Form.query.filter_by(is_template=True)
    category = request.args.get("category")
    if category:
        query = query.filter_by(template_category=category)
    templates = query.order_by(Form.created_at.desc()).all()
    return jsonify({"templates": [t.to_dict() for t in templates]}), 200

@form_bp.route("/templates/<int:template_id>/use", methods=["POST"])
@login_required
@role_required("Teacher", "Admin")
def use_template(template_id):
    template = _load(template_id)
    if not template or not template.is_template:
        return jsonify({"error": "Template not found"}), 404

    user = current_user()
    data = request.get_json(silent=True) or {}
    form = _copy_form(template, user, class_id=None)
    if (data.get("title") or "").strip():
        form.title = data["title"].strip()
    db.session.add(form)
    db.session.commit()
    logger.info("%s created form %s from template %s", user.username, form.id, template.id)

    return jsonify({"message": "Form created from template", "form": form.to_dict()}), 201

@form_bp.route("/<int:form_id>", methods=["GET"])
def get_form(form_id):
    form = _load(form_id)
    if not form:
        return jsonify({"error": "Form not found"}), 404

    payload = optional_user()
    user = db.session.get(User, payload.get("user_id")) if payload else None

    if _can_edit(form, user):
        return jsonify({"form": _with_availability(form.to_dict(), form)}), 200
    if form.status != "published" or form.is_template:
        return jsonify({"error": "Form not found"}), 404
    if not _can_respond(form, user):
        if user is None:
            return jsonify({"error": "Login required to view this form"}), 401
        return jsonify({"error": "You do not have access to this form"}), 403

    return jsonify({"form": _respondent_view(form, user)}), 200

@form_bp.route("/<int:form_id>", methods=["PUT"])
@login_required
def update_form(form_id):
    form = _load(form_id)
    if not form:
        return jsonify({"error": "Form not found"}), 404
    user = current_user()
    if not _can_edit(form, user):
        return jsonify({"error": "Only the owner or collaborators can edit this form"}), 403

    data = request.get_json() or {}
    if "class_id" in data and not (form.is_owner(user.username) or user.is_admin):
        return jsonify({"error": "Only the owner can move this form to another class"}), 403
    return _save_form_changes(form, data, user, message="Form updated successfully")

@form_bp.route("/<int:form_id>", methods=["DELETE"])
@login_required
def delete_form(form_id):
    form = _load(form_id)
    if not form:
        return jsonify({"error": "Form not found"}), 404
    user = current_user()
    if not (form.is_owner(user.username) or user.is_admin):
        return jsonify({"error": "Only the owner can delete this form"}), 403

    db.session.delete(form)
    db.session.commit()
    logger.info("Form %s and its responses deleted by %s", form_id, user.username)
    return jsonify({"message": "Form and responses deleted"}), 200

#__________________________________________________________________________________________ * Collaborators *__________________________________________________

@form_bp.route("/<int:form_id>/collaborators", methods=["POST"])
@login_required
def add_collaborator(form_id):
    form = _load(form_id)
    if not form:
        return jsonify({"error": "Form not found"}), 404
    user = current_user()
    if not form.is_owner(user.username):
        return jsonify({"error": "Only the owner can manage collaborators"}), 403

    username = ((request.get_json() or {}).get("username") or "").strip()
    collaborator = User.query.filter_by(username=username).first() if username else None
    if not collaborator:
        return jsonify({"error": "User not found"}), 404
    if collaborator.is_student:
        return jsonify({"error": "Students can't collaborate on forms"}), 400
    if collaborator.id == user.id or username in (form.collaborators or []):
        return jsonify({"error": "User is already a collaborator"}), 400

    form.collaborators = (form.collaborators or []) + [username]
    db.session.commit()
    return jsonify({"message": f"{username} added as collaborator", "collaborators": form.collaborators}), 200

@form_bp.route("/<int:form_id>/collaborators/<username>", methods=["DELETE"])
@login_required
def remove_collaborator(form_id, username):
    form = _load(form_id)
    if not form:
        return jsonify({"error": "Form not found"}), 404
    if not form.is_owner(current_user().username):
        return jsonify({"error": "Only the owner can manage collaborators"}), 403
    if username not in (form.collaborators or []):
        return jsonify({"error": "User is not a collaborator"}), 404

    form.collaborators = [c for c in form.collaborators if c != username]
    db.session.commit()
    return jsonify({"message": f"{username} removed", "collaborators": form.collaborators}), 200

#__________________________________________________________________________________________ * Distribution *__________________________________________________

@form_bp.route("/<int:form_id>/send-to-class", methods=["POST"])
@login_required
@role_required("Teacher", "Admin")
def send_to_class(form_id):
    form = _load(form_id)
    if not form:
        return jsonify({"error": "Form not found"}), 404
    user = current_user()
    if not _can_edit(form, user):
        return jsonify({"error": "Only the owner or collaborators can send this form"}), 403

    data = request.get_json() or {}
    class_ids = data.get("class_ids") or []
    if not isinstance(class_ids, list) or not class_ids:
        return jsonify({"error": "class_ids must be a non-empty list"}), 400
    try:
        deadline = parse_datetime(data.get("deadline"))
    except ValueError:
        return jsonify({"error": "Invalid deadline"}), 400

    classrooms = []
    for class_id in class_ids:
        classroom = db.session.get(Classroom, class_id)
        if not classroom:
            return jsonify({"error": f"Class {class_id} not found"}), 404
        if not can_manage_class(classroom, user):
            return jsonify({"error": f"You don't teach class {classroom.name}"}), 403
        classrooms.append(classroom)

    copies = []
    for classroom in classrooms:
        settings = copy.deepcopy(form.effective_settings)
        if deadline:
            settings["deadline"] = deadline.isoformat()
        copies.append((classroom, _copy_form(form, user, class_id=classroom.id, status="published", settings=settings)))
    db.session.add_all([c for _, c in copies])
    db.session.commit()

    kind = "exam" if form.effective_settings["is_quiz"] else "announcement"
    for classroom, sent in copies:
        notify_class_students(classroom, user, kind, f'New form in {classroom.name}: "{sent.title}"', sent.id)
        push_to_class(classroom.id, "form-published", {"form_id": sent.id, "title": sent.title})
    logger.info("Form %s sent to %d class(es)", form.id, len(copies))

    return jsonify({
        "message": f"Form sent to {len(copies)} class(es)",
        "forms": [sent.to_dict() for _, sent in copies],
    }), 201

#__________________________________________________________________________________________ * Responses *__________________________________________________

@form_bp.route("/<int:form_id>/submit", methods=["POST"])
def submit_form(form_id):
    form = _load(form_id)
    if not form or form.is_template or form.status == "draft":
        return jsonify({"error": "Form not found"}), 404

    settings = form.effective_settings
    if form.status == "closed" or not settings["accepting_responses"]:
        return jsonify({"error": "This form is not accepting responses"}), 400

    availability = FormGrader.availability(settings)
    if availability == "not_yet_open":
        return jsonify({"error": "Form is not yet available", "open_at": settings["open_at"]}), 400
    if availability == "closed":
        return jsonify({"error": "Form is closed for responses"}), 400

    payload = optional_user()
    user = db.session.get(User, payload.get("user_id")) if payload else None
    if settings["require_login"] and user is None:
        return jsonify({"error": "Login required to submit this form"}), 401
    if not _can_respond(form, user) and not _can_edit(form, user):
        return jsonify({"error": "You do not have access to this form"}), 403

    if user and not settings["allow_multiple_submissions"]:
        if FormResponse.query.filter_by(form_id=form.id, respondent_id=user.id).first():
            return jsonify({"error": "You have already responded to this form"}), 409

    data = request.get_json() or {}
    answers = data.get("answers") or []
    if not isinstance(answers, list) or any(not isinstance(a, dict) for a in answers):
        return jsonify({"error": "Answers must be a list of {question_id, answer}"}), 400

    given = {str(a.get("question_id")): a.get("answer") for a in answers}
    missing = [
        q.get("title") for q in form.questions or []
        if q.get("required") and given.get(str(q.get("id"))) in (None, "", [])
    ]
    if missing:
        return jsonify({"error": "Please answer all required questions", "missing": missing}), 400

    respondent = data.get("respondent") or {}
    if user:
        respondent = {
            "username": user.username,
            "name": user.name,
            "email": user.email or respondent.get("email"),
        }
    else:
        respondent = {"username": None, "name": respondent.get("name"), "email": respondent.get("email")}
    if settings["collect_email"] and not respondent.get("email"):
        return jsonify({"error": "Email is required for this form"}), 400

    now = datetime.utcnow()
    try:
        start_time = parse_datetime(data.get("start_time"))
    except ValueError:
        start_time = None
    completion_time = int((now - start_time).total_seconds()) if start_time and start_time <= now else None

    graded, score, pending_manual = FormGrader.grade_response(form.questions or [], settings, answers)
    graded_status = settings["is_quiz"] and settings["auto_grade"] and not pending_manual

    response = FormResponse(
        form_id=form.id,
        respondent_id=user.id if user else None,
        respondent=respondent,
        answers=graded,
        submitted_at=now,
        ip_address=request.remote_addr,
        user_agent=(request.user_agent.string or "")[:255],
        start_time=start_time,
        completion_time=completion_time,
        status="graded" if graded_status else "submitted",
    )
    response.set_score(score)
    form.response_count = (form.response_count or 0) + 1
    db.session.add(response)
    db.session.commit()
    logger.info("Response %s recorded for form %s (%s/%s)", response.id, form.id, score["total"], score["max_score"])

    push_to_user(form.owner.username, "form-response", {"form_id": form.id, "response_id": response.id})

    result = {"message": settings["confirmation_message"], "response_id": response.id}
    if settings["show_correct_answers"]:
        result["score"] = response.score
        result["answers"] = graded
    return jsonify(result), 201

@form_bp.route("/<int:form_id>/responses", methods=["GET"])
@login_required
def list_responses(form_id):
    form = _load(form_id)
    if not form:
        return jsonify({"error": "Form not found"}), 404
    if not _can_edit(form, current_user()):
        return jsonify({"error": "Only the owner or collaborators can view responses"}), 403

    responses = (FormResponse.query.filter_by(form_id=form.id)
                 .order_by(FormResponse.submitted_at.desc(), FormResponse.id.desc()).all())
    return jsonify({"responses": [r.to_dict() for r in responses], "total": len(responses)}), 200

def _load_response(form_id, response_id):
    return FormResponse.query.filter_by(id=response_id, form_id=form_id).first()

@form_bp.route("/<int:form_id>/responses/<int:response_id>", methods=["GET"])
@login_required
def get_response(form_id, response_id):
    form = _load(form_id)
    response = _load_response(form_id, response_id)
    if not form or not response:
        return jsonify({"error": "Response not found"}), 404
    user = current_user()
    if not _can_edit(form, user) and response.respondent_id != user.id:
        return jsonify({"error": "You do not have access to this response"}), 403

    return jsonify({"response": response.to_dict()}), 200

@form_bp.route("/<int:form_id>/responses/<int:response_id>", methods=["DELETE"])
@login_required
def delete_response(form_id, response_id):
    form = _load(form_id)
    response = _load_response(form_id, response_id)
    if not form or not response:
        return jsonify({"error": "Response not found"}), 404
    if not _can_edit(form, current_user()):
        return jsonify({"error": "Only the owner or collaborators can delete responses"}), 403

    db.session.delete(response)
    form.response_count = max(0, (form.response_count or 0) - 1)
    db.session.commit()
    return jsonify({"message": "Response deleted"}), 200

@form_bp.route("/<int:form_id>/responses/<int:response_id>/grade", methods=["PUT"])
@login_required
def grade_response(form_id, response_id):
    form = _load(form_id)
    response = _load_response(form_id, response_id)
    if not form or not response:
        return jsonify({"error": "Response not found"}), 404
    user = current_user()
    if not _can_edit(form, user):
        return jsonify({"error": "Only the owner or collaborators can grade responses"}), 403

    data = request.get_json() or {}
    manual_scores = data.get("manual_scores") or {}
    if not isinstance(manual_scores, dict):
        return jsonify({"error": "manual_scores must be an object"}), 400

    try:
        answers = FormGrader.apply_manual_scores(form.questions or [], response.answers or [], manual_scores)
    except GradingError as e:
        return jsonify({"error": str(e)}), 400

    score = FormGrader.aggregate(answers, response.score_max)
    override = data.get("score")
    if isinstance(override, dict):
        for key in ("total", "max_score", "percentage"):
            value = override.get(key)
            if value is not None:
                if not is_number(value) or value < 0:
                    return jsonify({"error": f"score.{key} must be a non-negative number"}), 400
                score[key] = value
        if override.get("percentage") is None:
            score["percentage"] = round(score["total"] / score["max_score"] * 100, 2) if score["max_score"] > 0 else 0
    elif override is not None:
        if not is_number(override) or override < 0:
            return jsonify({"error": "score must be a number or an object"}), 400
        score["percentage"] = override
    score["auto_graded"] = False

    response.answers = answers
    response.set_score(score)
    if "feedback" in data:
        response.feedback = data.get("feedback")
    response.status = "graded"
    db.session.commit()
    logger.info("Response %s graded by %s: %s/%s", response.id, user.username, score["total"], score["max_score"])

    if response.respondent_id:
        respondent = db.session.get(User, response.respondent_id)
        create_notification(respondent, user, "grade",
                            f'Your response to "{form.title}" was graded: {score["total"]:g}/{score["max_score"]:g}',
                            form.id, form.class_id)

    return jsonify({"message": "Response graded", "response": response.to_dict()}), 200

#__________________________________________________________________________________________ * Analytics *__________________________________________________

@form_bp.route("/<int:form_id>/analytics", methods=["GET"])
@login_required
def form_analytics(form_id):
    form = _load(form_id)
    if not form:
        return jsonify({"error": "Form not found"}), 404
    if not _can_edit(form, current_user()):
        return jsonify({"error": "Only the owner or collaborators can view analytics"}), 403

    responses = FormResponse.query.filter_by(form_id=form.id).all()
    summary = FormAnalytics.summarize(form, responses, current_app.config.get("PASSING_PERCENTAGE", 60))
    return jsonify({"analytics": summary}), 200

@form_bp.route("/<int:form_id>/export", methods=["GET"])
@login_required
def export_responses(form_id):
    form = _load(form_id)
    if not form:
        return jsonify({"error": "Form not found"}), 404
    if not _can_edit(form, current_user()):
        return jsonify({"error": "Only the owner or collaborators can export responses"}), 403

    responses = (FormResponse.query.filter_by(form_id=form.id)
                 .order_by(FormResponse.submitted_at.asc(), FormResponse.id.asc()).all())
    filename = secure_filename(f"{form.title}_responses.csv") or "responses.csv"
    return Response(
        FormAnalytics.to_csv(form, responses),
        mimetype="text/csv",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )
