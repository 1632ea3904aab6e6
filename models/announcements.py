from models import db
from sqlalchemy.orm import backref

class Announcement(db.Model):
    __tablename__ = "announcements"

    id = db.Column(db.Integer, primary_key=True)
    class_id = db.Column(db.Integer, db.ForeignKey("classes.id", ondelete="CASCADE"), nullable=False)
    teacher_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    message = db.Column(db.Text, nullable=False)
    created_at = db.Column(db.DateTime, default=db.func.now(), nullable=False)

    classroom = db.relationship("Classroom", backref=backref("announcements", cascade="all, delete-orphan"))
    teacher = db.relationship("User")

    def to_dict(self):
        return {
            "id": self.id,
            "class_id": self.class_id,
            "teacher": self.teacher.username if self.teacher else None,
            "teacher_name": self.teacher.name if self.teacher else None,
            "message": self.message,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
