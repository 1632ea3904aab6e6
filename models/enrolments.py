from models import db
from sqlalchemy.orm import backref

class Enrolment(db.Model):
    __tablename__ = 'enrolments'
    __table_args__ = (db.UniqueConstraint("class_id", "student_id", name="uq_enrolment_class_student"),)

    id = db.Column(db.Integer, primary_key=True)
    class_id = db.Column(db.Integer, db.ForeignKey('classes.id', ondelete="CASCADE"), nullable=False)
    student_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete="CASCADE"), nullable=False)
    enrolled_at = db.Column(db.DateTime, default=db.func.now(), nullable=False)

    classroom = db.relationship("Classroom", backref=backref("enrolments", cascade="all, delete-orphan"))
    student = db.relationship("User", backref=backref("enrolments", cascade="all, delete-orphan"))

    def __repr__(self):
        return f"<Enrolment Student {self.student_id} Class {self.class_id}>"
