import logging
import secrets

from models import db
from models.classes import Classroom
from models.enrolments import Enrolment

logger = logging.getLogger(__name__)

CODE_ALPHABET = "ABCDEFGHJKMNPQRSTUVWXYZ23456789"
CODE_LENGTH = 6


class EnrolmentError(ValueError):
    pass


class EnrolmentManager:
    @staticmethod
    def generate_code(attempts=10):
        """Pick a class code that no other class uses."""
        for _ in range(attempts):
            code = "".join(secrets.choice(CODE_ALPHABET) for _ in range(CODE_LENGTH))
            if not Classroom.query.filter_by(code=code).first():
                return code
        raise EnrolmentError("Could not generate a unique class code")

    @staticmethod
    def join_by_code(code, student):
        classroom = Classroom.query.filter_by(code=(code or "").strip().upper()).first()
        if not classroom:
            return None
        if classroom.is_student(student.id):
            raise EnrolmentError("You are already enrolled in this class")
        if classroom.teacher_id == student.id:
            raise EnrolmentError("You teach this class")
        db.session.add(Enrolment(class_id=classroom.id, student_id=student.id))
        db.session.commit()
        logger.info("%s joined class %s", student.username, classroom.id)
        return classroom

    @staticmethod
    def unenroll_student(classroom, student):
        enrolment = Enrolment.query.filter_by(class_id=classroom.id, student_id=student.id).first()
        if not enrolment:
            return False
        db.session.delete(enrolment)
        db.session.commit()
        logger.info("%s left class %s", student.username, classroom.id)
        return True
