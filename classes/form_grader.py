import math
from datetime import datetime

from utils.helpers import parse_datetime

EXACT_MATCH_TYPES = ("multiple_choice", "dropdown", "date", "time", "linear_scale")
TEXT_MATCH_TYPES = ("identification", "short_answer")
MANUAL_TYPES = ("paragraph", "file_upload")


class GradingError(ValueError):
    """Raised when a manual score can't be applied to a response."""


def _normalize(value):
    return str(value).strip().lower()


def _as_list(value):
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [part.strip() for part in str(value).split(",")]


def _points(question):
    try:
        return float(question.get("points") or 0)
    except (TypeError, ValueError):
        return 0.0


class FormGrader:
    """Scores form responses question by question.

    Every graded answer carries ``is_correct``, ``points_awarded`` and
    ``partial_credit``. Manually graded questions keep ``is_correct`` as
    None until a teacher scores them.
    """

    @staticmethod
    def is_gradable(question, settings):
        if not settings.get("is_quiz"):
            return False
        return (
            question.get("correct_answer") not in (None, "", [])
            or bool(question.get("enumeration_answers"))
            or bool(question.get("matching_pairs"))
        )

    @staticmethod
    def needs_manual_grading(question, settings):
        return (
            bool(settings.get("is_quiz"))
            and question.get("type") in MANUAL_TYPES
            and _points(question) > 0
        )

    @staticmethod
    def grade_answer(question, answer):
        qtype = question.get("type")
        points = _points(question)
        correct = question.get("correct_answer")
        partial = None

        if qtype in EXACT_MATCH_TYPES:
            is_correct = answer is not None and str(answer) == str(correct)
        elif qtype == "checkboxes":
            is_correct = sorted(str(a) for a in _as_list(answer)) == sorted(str(c) for c in _as_list(correct))
        elif qtype == "true_false":
            is_correct = answer is not None and _normalize(answer) == _normalize(correct)
        elif qtype in TEXT_MATCH_TYPES:
            is_correct = answer is not None and _normalize(answer) == _normalize(correct)
        elif qtype == "enumeration":
            expected = {_normalize(a) for a in question.get("enumeration_answers") or []}
            given = {_normalize(a) for a in _as_list(answer) if str(a).strip()}
            partial = len(given & expected) / len(expected) if expected else 0.0
            is_correct = partial == 1
        elif qtype == "matching_type":
            pairs = question.get("matching_pairs") or []
            matches = _as_list(answer)
            hits = sum(
                1 for idx, pair in enumerate(pairs)
                if idx < len(matches) and matches[idx] is not None
                and str(matches[idx]) == str(pair.get("right"))
            )
            partial = hits / len(pairs) if pairs else 0.0
            is_correct = partial == 1
        else:
            is_correct = False

        if partial is not None:
            awarded = points * partial
        else:
            awarded = points if is_correct else 0.0

        return {
            "is_correct": is_correct,
            "points_awarded": round(awarded, 2),
            "partial_credit": round(partial, 4) if partial else 0,
        }

    @staticmethod
    def grade_response(form_questions, settings, answers):
        """Grade submitted answers against a form's questions.

        Returns ``(graded_answers, score, pending_manual)``.
        """
        by_id = {str(q.get("id")): q for q in form_questions}
        max_score = 0.0
        for question in form_questions:
            if FormGrader.is_gradable(question, settings) or FormGrader.needs_manual_grading(question, settings):
                max_score += _points(question)

        graded = []
        pending_manual = False
        for item in answers or []:
            question = by_id.get(str(item.get("question_id")))
            if question is None:
                continue
            record = {
                "question_id": question.get("id"),
                "question_title": question.get("title"),
                "question_type": question.get("type"),
                "answer": item.get("answer"),
                "is_correct": None,
                "points_awarded": 0,
                "partial_credit": 0,
            }
            if FormGrader.is_gradable(question, settings):
                record.update(FormGrader.grade_answer(question, item.get("answer")))
            elif FormGrader.needs_manual_grading(question, settings):
                record["pending_manual"] = True
                pending_manual = True
            graded.append(record)

        score = FormGrader.aggregate(graded, max_score)
        score["auto_graded"] = bool(settings.get("is_quiz") and settings.get("auto_grade"))
        return graded, score, pending_manual

    @staticmethod
    def apply_manual_scores(form_questions, answers, manual_scores):
        """Record teacher-entered scores on a copy of the graded answers."""
        by_id = {str(q.get("id")): q for q in form_questions}
        updated = [dict(a) for a in answers]
        known = {str(a.get("question_id")) for a in updated}

        for question_id, value in (manual_scores or {}).items():
            if str(question_id) not in known:
                raise GradingError(f"No answer for question {question_id}")
            if isinstance(value, bool):
                raise GradingError("Manual scores must be numbers")
            try:
                value = float(value)
            except (TypeError, ValueError):
                raise GradingError("Manual scores must be numbers")
            if not math.isfinite(value):
                raise GradingError("Manual scores must be numbers")
            question = by_id.get(str(question_id))
            if question is None:
                raise GradingError(f"Question {question_id} is no longer on this form")
            limit = _points(question)
            if value < 0 or value > limit:
                raise GradingError(f"Score for question {question_id} must be between 0 and {limit:g}")

            for answer in updated:
                if str(answer.get("question_id")) == str(question_id):
                    answer["manual_score"] = value
                    answer["pending_manual"] = False
                    if limit:
                        answer["is_correct"] = value == limit
        return updated

    @staticmethod
    def aggregate(answers, max_score):
        total = 0.0
        for answer in answers:
            if answer.get("manual_score") is not None:
                total += float(answer["manual_score"])
            else:
                total += float(answer.get("points_awarded") or 0)
        percentage = (total / max_score) * 100 if max_score > 0 else 0
        return {
            "total": round(total, 2),
            "max_score": round(max_score, 2),
            "percentage": round(percentage, 2),
        }

    @staticmethod
    def availability(settings, now=None):
        now = now or datetime.utcnow()
        open_at = parse_datetime(settings.get("open_at"))
        close_at = parse_datetime(settings.get("close_at") or settings.get("deadline"))
        if open_at and now < open_at:
            return "not_yet_open"
        if close_at and now > close_at:
            return "closed"
        return "available"
