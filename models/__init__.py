from flask_sqlalchemy import SQLAlchemy

# Initialize SQLAlchemy
db = SQLAlchemy()

# Import models
from models.users import User

from models.classes import Classroom
from models.enrolments import Enrolment

from models.assignment import Assignment
from models.assignment_submission import AssignmentSubmission
from models.announcements import Announcement

from models.exams import Exam
from models.exam_submissions import ExamSubmission
from models.grades import Grade

from models.forms import Form
from models.form_responses import FormResponse

from models.materials import Material
from models.material_submissions import MaterialSubmission

from models.comments import Comment
from models.notifications import Notification
