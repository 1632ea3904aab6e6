from models import db
from sqlalchemy.orm import relationship, backref

class Assignment(db.Model):
    __tablename__ = "assignments"
    id = db.Column(db.Integer, primary_key=True)
    class_id = db.Column(db.Integer, db.ForeignKey("classes.id", ondelete="CASCADE"), nullable=False)
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    due_date = db.Column(db.DateTime, nullable=False)
    points_possible = db.Column(db.Integer, nullable=False, default=100)
    allow_late_submissions = db.Column(db.Boolean, nullable=False, default=False)
    created_by_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    created_at = db.Column(db.DateTime, default=db.func.now(), nullable=False)

    classroom = relationship("Classroom", backref=backref("assignments", cascade="all, delete-orphan"))
    created_by = relationship("User")

    def to_dict(self):
        return {
            "id": self.id,
            "class_id": self.class_id,
            "class_name": self.classroom.name if self.classroom else None,
            "title": self.title,
            "description": self.description,
            "due_date": self.due_date.isoformat() if self.due_date else None,
            "points_possible": self.points_possible,
            "allow_late_submissions": self.allow_late_submissions,
            "created_by": self.created_by.username if self.created_by else None,
            "submission_count": len(self.submissions),
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
