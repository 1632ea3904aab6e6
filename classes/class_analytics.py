from datetime import datetime, timedelta

from models.announcements import Announcement
from models.exam_submissions import ExamSubmission
from models.exams import Exam
from models.form_responses import FormResponse
from models.forms import Form
from models.grades import Grade
from classes.form_analytics import FormAnalytics

LETTER_GRADES = {"A": 95, "B": 85, "C": 75, "D": 65, "F": 50}


def grade_value(grade):
    """Numeric value of a stored grade, or None when it can't be read."""
    text = str(grade or "").strip().rstrip("%")
    try:
        return float(text)
    except ValueError:
        return LETTER_GRADES.get(text.upper())


def _average(values):
    return round(sum(values) / len(values), 2) if values else None


def exam_percentage(submission):
    if not submission.is_graded or not submission.total_questions:
        return None
    return round(submission.final_score / submission.total_questions * 100, 2)


def score_visible(submission):
    return submission.is_graded and not (submission.manual_grading and not submission.returned)


class ClassAnalytics:
    """Roll-ups over a class's grades, exams and quiz forms."""

    @staticmethod
    def class_overview(classroom, passing_percentage=60):
        grades = Grade.query.filter_by(class_id=classroom.id).all()
        exams = Exam.query.filter_by(class_id=classroom.id).all()
        submissions = [s for exam in exams for s in exam.submissions]

        quizzes = []
        for form in Form.query.filter_by(class_id=classroom.id, is_template=False).all():
            if not form.effective_settings.get("is_quiz"):
                continue
            responses = FormResponse.query.filter_by(form_id=form.id).all()
            summary = FormAnalytics.summarize(form, responses, passing_percentage)
            quizzes.append({
                "form_id": form.id,
                "title": form.title,
                "total_responses": summary["total_responses"],
                **summary["quiz_analytics"],
            })

        return {
            "class_id": classroom.id,
            "class_name": classroom.name,
            "teacher": classroom.teacher.username if classroom.teacher else None,
            "student_count": len(classroom.enrolments),
            "exam_count": len(exams),
            "announcement_count": Announcement.query.filter_by(class_id=classroom.id).count(),
            "average_grade": _average([v for v in map(grade_value, (g.grade for g in grades)) if v is not None]),
            "total_submissions": len(submissions),
            "average_exam_percentage": _average([p for p in map(exam_percentage, submissions) if p is not None]),
            "quizzes": quizzes,
        }

    @staticmethod
    def student_report(student, class_ids=None, visible_only=False):
        """Grades and exam results for one student.

        ``class_ids`` limits the report to those classes. With
        ``visible_only`` unreturned manual grades are left out of the
        averages.
        """
        grades = Grade.query.filter_by(student_id=student.id)
        submissions = ExamSubmission.query.filter_by(student_id=student.id).join(Exam)
        if class_ids is not None:
            grades = grades.filter(Grade.class_id.in_(class_ids))
            submissions = submissions.filter(Exam.class_id.in_(class_ids))
        grades = grades.order_by(Grade.created_at.asc(), Grade.id.asc()).all()
        submissions = submissions.all()

        scored = [s for s in submissions if score_visible(s)] if visible_only else submissions
        exam_total = 0
        if class_ids is not None:
            exam_total = Exam.query.filter(Exam.class_id.in_(class_ids)).count()

        return {
            "username": student.username,
            "name": student.name,
            "average_grade": _average([v for v in map(grade_value, (g.grade for g in grades)) if v is not None]),
            "total_grades": len(grades),
            "completed_exams": len(submissions),
            "total_exams": exam_total,
            "pending_exams": max(exam_total - len(submissions), 0),
            "average_exam_percentage": _average([p for p in map(exam_percentage, scored) if p is not None]),
            "grades": [g.to_dict() for g in grades],
        }

    @staticmethod
    def exam_report(exam):
        submissions = exam.submissions
        graded = [s for s in submissions if s.is_graded]
        total_students = len(exam.classroom.enrolments) if exam.classroom else 0
        scores = [s.final_score for s in graded]
        return {
            "exam_id": exam.id,
            "exam_title": exam.title,
            "class_id": exam.class_id,
            "total_students": total_students,
            "submission_count": len(submissions),
            "submission_rate": round(len(submissions) / total_students * 100, 2) if total_students else 0,
            "graded_count": len(graded),
            "returned_count": sum(1 for s in submissions if s.returned),
            "average_score": _average(scores),
            "highest_score": max(scores) if scores else None,
            "lowest_score": min(scores) if scores else None,
            "total_questions": exam.total_questions,
            "due_date": exam.due_date.isoformat() if exam.due_date else None,
        }

    @staticmethod
    def engagement(classroom, days=30, now=None):
        since = (now or datetime.utcnow()) - timedelta(days=days)
        recent_submissions = (ExamSubmission.query.join(Exam)
                              .filter(Exam.class_id == classroom.id, ExamSubmission.submitted_at >= since).all())
        recent_responses = (FormResponse.query.join(Form)
                            .filter(Form.class_id == classroom.id, FormResponse.submitted_at >= since).all())

        student_ids = {e.student_id for e in classroom.enrolments}
        active = {s.student_id for s in recent_submissions}
        active |= {r.respondent_id for r in recent_responses if r.respondent_id}
        active &= student_ids

        return {
            "class_id": classroom.id,
            "total_students": len(student_ids),
            "active_students": len(active),
            "engagement_rate": round(len(active) / len(student_ids) * 100, 2) if student_ids else 0,
            "recent_activity": {
                "announcements": Announcement.query.filter(
                    Announcement.class_id == classroom.id, Announcement.created_at >= since).count(),
                "exams": Exam.query.filter(Exam.class_id == classroom.id, Exam.created_at >= since).count(),
                "exam_submissions": len(recent_submissions),
                "form_responses": len(recent_responses),
            },
            "period_days": days,
        }
