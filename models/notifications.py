from models import db
from sqlalchemy.orm import relationship, backref

NOTIFICATION_TYPES = ("assignment", "announcement", "grade", "comment", "material", "exam")


class Notification(db.Model):
    __tablename__ = "notifications"

    id = db.Column(db.Integer, primary_key=True)
    recipient_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    sender_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    type = db.Column(db.String(20), nullable=False)
    message = db.Column(db.Text, nullable=False)
    read = db.Column(db.Boolean, nullable=False, default=False)
    reference_id = db.Column(db.String(64), nullable=True)
    class_id = db.Column(db.Integer, db.ForeignKey("classes.id", ondelete="SET NULL"), nullable=True)
    created_at = db.Column(db.DateTime, default=db.func.now(), nullable=False)

    recipient = relationship("User", foreign_keys=[recipient_id],
                             backref=backref("notifications", cascade="all, delete-orphan"))
    sender = relationship("User", foreign_keys=[sender_id])

    def __repr__(self):
        return f"<Notification {self.type} -> {self.recipient_id}>"

    def to_dict(self):
        return {
            "id": self.id,
            "recipient": self.recipient.username if self.recipient else None,
            "sender": self.sender.username if self.sender else None,
            "sender_name": self.sender.name if self.sender else None,
            "type": self.type,
            "message": self.message,
            "read": self.read,
            "reference_id": self.reference_id,
            "class_id": self.class_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
