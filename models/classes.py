from models import db
from sqlalchemy.orm import relationship, backref


class Classroom(db.Model):
    __tablename__ = "classes"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    section = db.Column(db.String(60), nullable=True)
    course = db.Column(db.String(120), nullable=True)
    year = db.Column(db.String(20), nullable=True)
    code = db.Column(db.String(6), nullable=False, unique=True)
    bg = db.Column(db.String(20), nullable=False, default="#FFF0D8")
    teacher_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    created_at = db.Column(db.DateTime, default=db.func.now(), nullable=False)

    teacher = relationship("User", backref=backref("classes_taught", cascade="all, delete-orphan"))

    @property
    def students(self):
        return [enrolment.student for enrolment in self.enrolments]

    def is_student(self, user_id):
        return any(enrolment.student_id == user_id for enrolment in self.enrolments)

    def is_member(self, user_id):
        return self.teacher_id == user_id or self.is_student(user_id)

    def __repr__(self):
        return f"<Classroom {self.name} ({self.code})>"

    def to_dict(self, include_students=False):
        data = {
            "id": self.id,
            "name": self.name,
            "section": self.section,
            "course": self.course,
            "year": self.year,
            "code": self.code,
            "bg": self.bg,
            "teacher": self.teacher.username if self.teacher else None,
            "teacher_name": self.teacher.name if self.teacher else None,
            "student_count": len(self.enrolments),
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
        if include_students:
            data["students"] = [student.username for student in self.students]
        return data
