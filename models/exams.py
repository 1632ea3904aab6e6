from models import db
from sqlalchemy.orm import relationship, backref

class Exam(db.Model):
    __tablename__ = "exams"

    id = db.Column(db.Integer, primary_key=True)
    class_id = db.Column(db.Integer, db.ForeignKey("classes.id", ondelete="CASCADE"), nullable=False)
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    due_date = db.Column(db.DateTime, nullable=True)
    questions = db.Column(db.JSON, nullable=False, default=list)
    manual_grading = db.Column(db.Boolean, nullable=False, default=False)
    returned = db.Column(db.Boolean, nullable=False, default=False)
    created_by_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    created_at = db.Column(db.DateTime, default=db.func.now(), nullable=False)

    classroom = relationship("Classroom", backref=backref("exams", cascade="all, delete-orphan"))
    created_by = relationship("User")

    @property
    def total_questions(self):
        return len(self.questions or [])

    def __repr__(self):
        return f"<Exam {self.title} (Class ID {self.class_id})>"

    def to_dict(self, include_answers=True):
        questions = self.questions or []
        if not include_answers:
            questions = [{k: v for k, v in q.items() if k != "correct_answer"} for q in questions]
        return {
            "id": self.id,
            "class_id": self.class_id,
            "class_name": self.classroom.name if self.classroom else None,
            "title": self.title,
            "description": self.description,
            "due_date": self.due_date.isoformat() if self.due_date else None,
            "questions": questions,
            "total_questions": self.total_questions,
            "manual_grading": self.manual_grading,
            "returned": self.returned,
            "created_by": self.created_by.username if self.created_by else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
