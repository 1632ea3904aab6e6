"""Unit tests for exam scoring and credit points."""
from datetime import datetime, timedelta

import pytest

from classes.exam_grader import ExamGrader

QUESTIONS = [
    {"text": "Capital of France?", "type": "multiple", "options": ["Paris", "Rome"], "correct_answer": "Paris"},
    {"text": "Chemical symbol for water", "type": "short", "correct_answer": "H2O"},
    {"text": "Largest planet", "type": "short", "correct_answer": "Jupiter"},
]


class TestRawScore:
    """Answers are matched to questions by position."""

    def test_all_correct(self):
        assert ExamGrader.raw_score(QUESTIONS, ["Paris", " h2o ", "JUPITER"]) == 3

    def test_multiple_choice_is_exact(self):
        assert ExamGrader.raw_score(QUESTIONS, ["paris", "x", "y"]) == 0

    def test_short_answers_ignore_case_and_spaces(self):
        assert ExamGrader.raw_score(QUESTIONS, ["Rome", "h2o", "jupiter  "]) == 2

    def test_fewer_answers_than_questions(self):
        assert ExamGrader.raw_score(QUESTIONS, ["Paris"]) == 1


class TestTimingDelta:
    def test_early_submission_earns_a_credit(self):
        now = datetime(2026, 3, 1, 9, 0)
        assert ExamGrader.timing_delta(now + timedelta(days=1), now) == 1

    def test_late_submission_loses_two(self):
        now = datetime(2026, 3, 1, 9, 0)
        assert ExamGrader.timing_delta(now - timedelta(minutes=1), now) == -2

    def test_no_due_date(self):
        assert ExamGrader.timing_delta(None) == 0


class TestApplyCredits:
    """Credits fill missing points and the balance stays within bounds."""

    def test_credits_fill_missing_points(self):
        assert ExamGrader.apply_credits(raw=7, total=10, balance=5, delta=0) == (10, 3, 2)

    def test_balance_smaller_than_gap(self):
        assert ExamGrader.apply_credits(raw=4, total=10, balance=2, delta=0) == (6, 2, 0)

    def test_perfect_score_keeps_credits(self):
        assert ExamGrader.apply_credits(raw=10, total=10, balance=3, delta=1) == (10, 0, 4)

    def test_bonus_is_added_before_filling(self):
        assert ExamGrader.apply_credits(raw=8, total=10, balance=0, delta=1) == (9, 1, 0)

    def test_balance_is_capped(self):
        assert ExamGrader.apply_credits(raw=10, total=10, balance=10, delta=1, cap=10) == (10, 0, 10)

    def test_balance_never_negative(self):
        assert ExamGrader.apply_credits(raw=5, total=10, balance=1, delta=-2) == (5, 0, 0)

    def test_requested_limits_usage(self):
        assert ExamGrader.apply_credits(raw=5, total=10, balance=6, delta=0, requested=2) == (7, 2, 4)


class TestValidateQuestions:
    def test_rejects_empty_exam(self):
        with pytest.raises(ValueError):
            ExamGrader.validate_questions([])

    def test_rejects_unknown_type(self):
        with pytest.raises(ValueError):
            ExamGrader.validate_questions([{"text": "Q", "type": "essay"}])

    def test_multiple_needs_matching_correct_answer(self):
        with pytest.raises(ValueError):
            ExamGrader.validate_questions([{"text": "Q", "type": "multiple", "options": ["a", "b"], "correct_answer": "c"}])

    def test_cleans_questions(self):
        cleaned = ExamGrader.validate_questions([{"text": "  Q1 ", "correct_answer": "x", "extra": 1}])
        assert cleaned == [{"text": "Q1", "type": "short", "options": [], "correct_answer": "x"}]
