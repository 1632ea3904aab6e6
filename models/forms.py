from models import db
from sqlalchemy.orm import relationship, backref

QUESTION_TYPES = (
    "short_answer", "paragraph", "multiple_choice", "checkboxes", "dropdown",
    "linear_scale", "date", "time", "file_upload", "identification",
    "true_false", "enumeration", "matching_type",
)
FORM_STATUSES = ("draft", "published", "closed")
TEMPLATE_CATEGORIES = ("feedback", "quiz", "survey", "registration", "custom")

DEFAULT_FORM_SETTINGS = {
    "is_quiz": False,
    "auto_grade": True,
    "show_correct_answers": False,
    "allow_multiple_submissions": False,
    "collect_email": False,
    "require_login": True,
    "shuffle_questions": False,
    "shuffle_answers": False,
    "accepting_responses": True,
    "open_at": None,
    "close_at": None,
    "deadline": None,
    "confirmation_message": "Your response has been recorded.",
}

DEFAULT_THEME = {
    "header_color": "#673ab7",
    "background_color": "#f0ebf8",
    "font_family": "Roboto",
}


class Form(db.Model):
    __tablename__ = "forms"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    owner_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    class_id = db.Column(db.Integer, db.ForeignKey("classes.id", ondelete="SET NULL"), nullable=True)
    collaborators = db.Column(db.JSON, nullable=False, default=list)
    questions = db.Column(db.JSON, nullable=False, default=list)
    sections = db.Column(db.JSON, nullable=False, default=list)
    exam_header = db.Column(db.JSON, nullable=True)
    settings = db.Column(db.JSON, nullable=False, default=dict)
    theme = db.Column(db.JSON, nullable=False, default=dict)
    is_template = db.Column(db.Boolean, nullable=False, default=False)
    template_category = db.Column(db.String(30), nullable=True)
    status = db.Column(db.String(20), nullable=False, default="draft")
    response_count = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, default=db.func.now(), nullable=False)
    updated_at = db.Column(db.DateTime, default=db.func.now(), onupdate=db.func.now(), nullable=False)

    owner = relationship("User", backref=backref("forms", cascade="all, delete-orphan"))
    classroom = relationship("Classroom")

    @property
    def effective_settings(self):
        return {**DEFAULT_FORM_SETTINGS, **(self.settings or {})}

    def is_owner(self, username):
        return self.owner is not None and self.owner.username == username

    def can_edit(self, username):
        return self.is_owner(username) or username in (self.collaborators or [])

    def question_by_id(self, question_id):
        for question in self.questions or []:
            if str(question.get("id")) == str(question_id):
                return question
        return None

    def __repr__(self):
        return f"<Form {self.title} ({self.status})>"

    def to_dict(self):
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "owner": self.owner.username if self.owner else None,
            "class_id": self.class_id,
            "class_name": self.classroom.name if self.classroom else None,
            "collaborators": self.collaborators or [],
            "questions": self.questions or [],
            "sections": self.sections or [],
            "exam_header": self.exam_header,
            "settings": self.effective_settings,
            "theme": {**DEFAULT_THEME, **(self.theme or {})},
            "is_template": self.is_template,
            "template_category": self.template_category,
            "status": self.status,
            "response_count": self.response_count,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
