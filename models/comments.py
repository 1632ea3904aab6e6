from models import db
from sqlalchemy.orm import relationship, backref

REFERENCE_TYPES = ("assignment", "announcement", "material")


class Comment(db.Model):
    __tablename__ = "comments"

    id = db.Column(db.Integer, primary_key=True)
    content = db.Column(db.Text, nullable=False)
    author_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    author_role = db.Column(db.String(20), nullable=False)
    reference_type = db.Column(db.String(20), nullable=False)
    reference_id = db.Column(db.Integer, nullable=False)
    class_id = db.Column(db.Integer, db.ForeignKey("classes.id", ondelete="CASCADE"), nullable=True)
    created_at = db.Column(db.DateTime, default=db.func.now(), nullable=False)
    updated_at = db.Column(db.DateTime, default=db.func.now(), onupdate=db.func.now(), nullable=False)

    author = relationship("User", backref=backref("comments", cascade="all, delete-orphan"))

    def to_dict(self):
        return {
            "id": self.id,
            "content": self.content,
            "author": self.author.username if self.author else None,
            "author_name": self.author.name if self.author else None,
            "author_role": self.author_role,
            "reference_type": self.reference_type,
            "reference_id": self.reference_id,
            "class_id": self.class_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
