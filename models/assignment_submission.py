from models import db
import os
from sqlalchemy.orm import relationship, backref
from sqlalchemy.sql import func

class AssignmentSubmission(db.Model):
    __tablename__ = "assignment_submissions"
    __table_args__ = (db.UniqueConstraint("assignment_id", "student_id", name="uq_assignment_student"),)

    id = db.Column(db.Integer, primary_key=True)
    assignment_id = db.Column(db.Integer, db.ForeignKey("assignments.id", ondelete="CASCADE"), nullable=False)
    student_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    file_url = db.Column(db.String(512), nullable=False)
    file_name = db.Column(db.String(255), nullable=True)
    status = db.Column(db.String(20), nullable=False, default="submitted")  # submitted, late, graded
    score = db.Column(db.Float, nullable=True)
    feedback = db.Column(db.Text, nullable=True)
    submitted_at = db.Column(db.DateTime, default=func.current_timestamp())
    graded_at = db.Column(db.DateTime, nullable=True)

    # Relationships
    assignment = relationship("Assignment", backref=backref("submissions", cascade="all, delete-orphan"))
    student = relationship("User", backref=backref("assignment_submissions", cascade="all, delete-orphan"))

    def to_dict(self):
        return {
            "id": self.id,
            "assignment_id": self.assignment_id,
            "student": self.student.username if self.student else None,
            "student_name": self.student.name if self.student else None,
            "file_name": self.file_name or os.path.basename(self.file_url),
            "file_url": self.file_url,
            "status": self.status,
            "score": self.score,
            "feedback": self.feedback,
            "submitted_at": self.submitted_at.isoformat() if self.submitted_at else None,
            "graded_at": self.graded_at.isoformat() if self.graded_at else None,
        }
