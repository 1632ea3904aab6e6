from models import db
from sqlalchemy.orm import relationship, backref

RESPONSE_STATUSES = ("submitted", "graded", "reviewed")


class FormResponse(db.Model):
    __tablename__ = "form_responses"

    id = db.Column(db.Integer, primary_key=True)
    form_id = db.Column(db.Integer, db.ForeignKey("forms.id", ondelete="CASCADE"), nullable=False)
    respondent_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    respondent = db.Column(db.JSON, nullable=False, default=dict)  # username, email, name
    answers = db.Column(db.JSON, nullable=False, default=list)
    score_total = db.Column(db.Float, nullable=False, default=0)
    score_max = db.Column(db.Float, nullable=False, default=0)
    score_percentage = db.Column(db.Float, nullable=False, default=0)
    auto_graded = db.Column(db.Boolean, nullable=False, default=False)
    submitted_at = db.Column(db.DateTime, default=db.func.now(), nullable=False)
    ip_address = db.Column(db.String(64), nullable=True)
    user_agent = db.Column(db.String(255), nullable=True)
    start_time = db.Column(db.DateTime, nullable=True)
    completion_time = db.Column(db.Integer, nullable=True)  # seconds
    feedback = db.Column(db.Text, nullable=True)
    status = db.Column(db.String(20), nullable=False, default="submitted")

    form = relationship("Form", backref=backref("responses", cascade="all, delete-orphan"))

    @property
    def score(self):
        return {
            "total": self.score_total,
            "max_score": self.score_max,
            "percentage": self.score_percentage,
            "auto_graded": self.auto_graded,
        }

    def set_score(self, score):
        self.score_total = score["total"]
        self.score_max = score["max_score"]
        self.score_percentage = score["percentage"]
        self.auto_graded = score.get("auto_graded", self.auto_graded)

    def to_dict(self):
        return {
            "id": self.id,
            "form_id": self.form_id,
            "respondent": self.respondent or {},
            "answers": self.answers or [],
            "score": self.score,
            "submitted_at": self.submitted_at.isoformat() if self.submitted_at else None,
            "ip_address": self.ip_address,
            "user_agent": self.user_agent,
            "start_time": self.start_time.isoformat() if self.start_time else None,
            "completion_time": self.completion_time,
            "feedback": self.feedback,
            "status": self.status,
        }
