from models import db
from sqlalchemy.orm import relationship, backref


class MaterialSubmission(db.Model):
    __tablename__ = "material_submissions"

    id = db.Column(db.Integer, primary_key=True)
    material_id = db.Column(db.Integer, db.ForeignKey("materials.id", ondelete="CASCADE"), nullable=False)
    class_id = db.Column(db.Integer, db.ForeignKey("classes.id", ondelete="CASCADE"), nullable=False)
    student_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    file_name = db.Column(db.String(255), nullable=False)
    file_path = db.Column(db.String(512), nullable=False)
    file_size = db.Column(db.Integer, nullable=True)
    mime_type = db.Column(db.String(100), nullable=True)
    status = db.Column(db.String(20), nullable=False, default="submitted")  # submitted, graded, returned
    score = db.Column(db.Float, nullable=True)
    feedback = db.Column(db.Text, nullable=True)
    submitted_at = db.Column(db.DateTime, default=db.func.now(), nullable=False)
    graded_at = db.Column(db.DateTime, nullable=True)

    material = relationship("Material", backref=backref("submissions", cascade="all, delete-orphan"))
    student = relationship("User", backref=backref("material_submissions", cascade="all, delete-orphan"))

    def to_dict(self):
        return {
            "id": self.id,
            "material_id": self.material_id,
            "class_id": self.class_id,
            "student": self.student.username if self.student else None,
            "student_name": self.student.name if self.student else None,
            "file_name": self.file_name,
            "file_path": self.file_path,
            "file_size": self.file_size,
            "mime_type": self.mime_type,
            "status": self.status,
            "score": self.score,
            "feedback": self.feedback,
            "submitted_at": self.submitted_at.isoformat() if self.submitted_at else None,
            "graded_at": self.graded_at.isoformat() if self.graded_at else None,
        }
