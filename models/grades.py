from models import db
from sqlalchemy.orm import relationship, backref


class Grade(db.Model):
    __tablename__ = "grades"

    id = db.Column(db.Integer, primary_key=True)
    class_id = db.Column(db.Integer, db.ForeignKey("classes.id", ondelete="CASCADE"), nullable=False)
    student_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    exam_id = db.Column(db.Integer, db.ForeignKey("exams.id", ondelete="SET NULL"), nullable=True)
    grade = db.Column(db.String(50), nullable=False)
    feedback = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, default=db.func.now(), nullable=False)

    classroom = relationship("Classroom", backref=backref("grades", cascade="all, delete-orphan"))
    student = relationship("User", backref=backref("grades", cascade="all, delete-orphan"))
    exam = relationship("Exam")

    def to_dict(self):
        return {
            "id": self.id,
            "class_id": self.class_id,
            "class_name": self.classroom.name if self.classroom else None,
            "student": self.student.username if self.student else None,
            "exam_id": self.exam_id,
            "grade": self.grade,
            "feedback": self.feedback,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
