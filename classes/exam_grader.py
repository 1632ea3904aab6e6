from datetime import datetime

EXAM_QUESTION_TYPES = ("short", "multiple")
EARLY_BONUS = 1
LATE_PENALTY = -2


class ExamGrader:
    @staticmethod
    def validate_questions(questions):
        if not isinstance(questions, list) or not questions:
            raise ValueError("An exam needs at least one question.")
        cleaned = []
        for index, question in enumerate(questions):
            if not isinstance(question, dict) or not str(question.get("text") or "").strip():
                raise ValueError(f"Question {index + 1} needs text.")
            qtype = question.get("type", "short")
            if qtype not in EXAM_QUESTION_TYPES:
                raise ValueError(f"Question {index + 1} must be 'short' or 'multiple'.")
            options = question.get("options") or []
            if qtype == "multiple":
                if not isinstance(options, list) or len(options) < 2:
                    raise ValueError(f"Question {index + 1} needs at least two options.")
                if question.get("correct_answer") not in (None, "") and question["correct_answer"] not in options:
                    raise ValueError(f"The correct answer for question {index + 1} must be one of the options.")
            cleaned.append({
                "text": question["text"].strip(),
                "type": qtype,
                "options": options if qtype == "multiple" else [],
                "correct_answer": question.get("correct_answer"),
            })
        return cleaned

    @staticmethod
    def raw_score(questions, answers):
        """Count correct answers, matched to questions by position."""
        answers = answers or []
        score = 0
        for index, question in enumerate(questions):
            if index >= len(answers):
                break
            expected = question.get("correct_answer")
            given = answers[index]
            if expected in (None, "") or given is None:
                continue
            if question.get("type") == "multiple":
                if given == expected:
                    score += 1
            elif str(given).strip().lower() == str(expected).strip().lower():
                score += 1
        return score

    @staticmethod
    def timing_delta(due_date, now=None):
        if not due_date:
            return 0
        now = now or datetime.utcnow()
        return EARLY_BONUS if now < due_date else LATE_PENALTY

    @staticmethod
    def apply_credits(raw, total, balance, delta, requested=None, cap=10):
        """Fill missing points from the student's credit balance.

        The timing delta is applied to the balance first, then clamped to
        ``0..cap``. Returns ``(final_score, credits_used, new_balance)``.
        """
        balance = max(0, min(cap, (balance or 0) + delta))
        missing = max(0, total - raw)
        used = min(balance, missing)
        if requested is not None:
            used = min(used, max(0, int(requested)))
        return raw + used, used, balance - used
