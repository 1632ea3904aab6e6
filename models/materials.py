from models import db
from sqlalchemy.orm import relationship, backref

MATERIAL_TYPES = ("link", "file", "video", "document")


class Material(db.Model):
    __tablename__ = "materials"

    id = db.Column(db.Integer, primary_key=True)
    class_id = db.Column(db.Integer, db.ForeignKey("classes.id", ondelete="CASCADE"), nullable=False)
    teacher_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    type = db.Column(db.String(20), nullable=False)
    content = db.Column(db.Text, nullable=False)
    opening_time = db.Column(db.DateTime, nullable=True)
    closing_time = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=db.func.now(), nullable=False)
    updated_at = db.Column(db.DateTime, default=db.func.now(), onupdate=db.func.now(), nullable=False)

    classroom = relationship("Classroom", backref=backref("materials", cascade="all, delete-orphan"))
    teacher = relationship("User")

    def is_open(self, now):
        if self.opening_time and now < self.opening_time:
            return False
        if self.closing_time and now > self.closing_time:
            return False
        return True

    def to_dict(self):
        return {
            "id": self.id,
            "class_id": self.class_id,
            "class_name": self.classroom.name if self.classroom else None,
            "teacher": self.teacher.username if self.teacher else None,
            "title": self.title,
            "description": self.description,
            "type": self.type,
            "content": self.content,
            "opening_time": self.opening_time.isoformat() if self.opening_time else None,
            "closing_time": self.closing_time.isoformat() if self.closing_time else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
