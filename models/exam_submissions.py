from models import db
from sqlalchemy.orm import relationship, backref


class ExamSubmission(db.Model):
    __tablename__ = "exam_submissions"
    __table_args__ = (db.UniqueConstraint("exam_id", "student_id", name="uq_exam_student"),)

    id = db.Column(db.Integer, primary_key=True)
    exam_id = db.Column(db.Integer, db.ForeignKey("exams.id", ondelete="CASCADE"), nullable=False)
    student_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    answers = db.Column(db.JSON, nullable=False, default=list)
    raw_score = db.Column(db.Integer, nullable=False, default=0)
    final_score = db.Column(db.Float, nullable=True)
    total_questions = db.Column(db.Integer, nullable=False, default=0)
    credits_used = db.Column(db.Integer, nullable=False, default=0)
    credit_delta = db.Column(db.Integer, nullable=False, default=0)
    manual_grading = db.Column(db.Boolean, nullable=False, default=False)
    feedback = db.Column(db.Text, nullable=True)
    submitted_at = db.Column(db.DateTime, default=db.func.now(), nullable=False)
    graded_at = db.Column(db.DateTime, nullable=True)
    returned = db.Column(db.Boolean, nullable=False, default=False)
    returned_at = db.Column(db.DateTime, nullable=True)

    exam = relationship("Exam", backref=backref("submissions", cascade="all, delete-orphan"))
    student = relationship("User", backref=backref("exam_submissions", cascade="all, delete-orphan"))

    @property
    def is_graded(self):
        return self.final_score is not None

    def to_dict(self, hide_score=False):
        data = {
            "id": self.id,
            "exam_id": self.exam_id,
            "exam_title": self.exam.title if self.exam else None,
            "student": self.student.username if self.student else None,
            "student_name": self.student.name if self.student else None,
            "answers": self.answers,
            "raw_score": self.raw_score,
            "final_score": self.final_score,
            "total_questions": self.total_questions,
            "credits_used": self.credits_used,
            "credit_delta": self.credit_delta,
            "manual_grading": self.manual_grading,
            "feedback": self.feedback,
            "submitted_at": self.submitted_at.isoformat() if self.submitted_at else None,
            "graded_at": self.graded_at.isoformat() if self.graded_at else None,
            "returned": self.returned,
            "returned_at": self.returned_at.isoformat() if self.returned_at else None,
        }
        if hide_score:
            data.update({"raw_score": None, "final_score": None, "credits_used": None, "feedback": None})
        return data
