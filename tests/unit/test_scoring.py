"""
Unit tests for aggregate attempt scoring.
"""

import random

import pytest

from src.assessment.evaluators import resolve_answer
from src.assessment.models import QuizDefinition
from src.assessment.scoring import round_half_up, score_attempt


def _answers(quiz, raw: dict):
    return {qid: resolve_answer(quiz.get_question(qid), value) for qid, value in raw.items()}


class TestRoundHalfUp:
    @pytest.mark.parametrize(
        "value,expected",
        [(66.666, 67), (66.5, 67), (66.49, 66), (0.0, 0), (100.0, 100), (12.5, 13)],
    )
    def test_rounding(self, value, expected):
        assert round_half_up(value) == expected


class TestScoreAttempt:
    """Test score_attempt over whole quizzes."""

    def test_two_of_three(self, three_question_quiz):
        """2/3 correct rounds to 67 and misses a 70 pass mark."""
        result = score_attempt(three_question_quiz, _answers(three_question_quiz, {"q1": 2, "q2": 1, "q3": 0}))

        assert result.correct_count == 2
        assert result.total_count == 3
        assert result.percentage == 67
        assert result.passed is False
        assert result.per_question_correctness == (True, True, False)
        assert result.missed_indices() == [2]

    def test_all_correct(self, three_question_quiz):
        result = score_attempt(three_question_quiz, _answers(three_question_quiz, {"q1": 2, "q2": 1, "q3": 3}))

        assert result.percentage == 100
        assert result.passed is True
        assert result.xp_earned == 30

    def test_unanswered_counts_incorrect(self, three_question_quiz):
        result = score_attempt(three_question_quiz, _answers(three_question_quiz, {"q1": 2}))

        assert result.correct_count == 1
        assert result.per_question_correctness == (True, False, False)

    def test_no_answers(self, three_question_quiz):
        result = score_attempt(three_question_quiz, {})
        assert result.percentage == 0
        assert result.passed is False

    def test_pass_mark_is_inclusive(self):
        quiz = QuizDefinition.model_validate(
            {
                "id": "half",
                "passing_score": 50,
                "questions": [
                    {"id": "a", "kind": "single-choice", "options": ["x", "y"], "correct_answer": 0},
                    {"id": "b", "kind": "single-choice", "options": ["x", "y"], "correct_answer": 0},
                ],
            }
        )
        result = score_attempt(quiz, _answers(quiz, {"a": 0, "b": 1}))
        assert result.percentage == 50
        assert result.passed is True

    def test_empty_quiz(self):
        quiz = QuizDefinition.model_validate({"id": "empty", "questions": []})
        result = score_attempt(quiz, {})
        assert result.percentage == 0
        assert result.total_count == 0

    def test_scenario_credit_moves_percentage(self, mixed_quiz):
        """A partial scenario adds credit but not a correct count."""
        answers = _answers(
            mixed_quiz,
            {"single": 0, "multi": [0, 2], "order": [0, 1, 2], "incident": ["a", "b"]},
        )
        result = score_attempt(mixed_quiz, answers)

        assert result.correct_count == 3
        assert result.earned_credit == pytest.approx(3.7)
        assert result.percentage == 93  # 3.7 / 4
        assert result.passed is True

    def test_retry_multiplier_reduces_xp(self, three_question_quiz):
        answers = _answers(three_question_quiz, {"q1": 2, "q2": 1, "q3": 3})
        result = score_attempt(three_question_quiz, answers, xp_multiplier=0.8)
        assert result.xp_earned == 24
        assert result.percentage == 100

    def test_percentage_always_in_range(self, mixed_quiz):
        """Random (often malformed) answers always give a valid ScoreResult."""
        rng = random.Random(42)
        pool = [0, 1, 2, 3, -1, "x", None, [0], [0, 2], [2, 1, 0], ["a", "a"], ["b"], {}, 1.5, True]

        for _ in range(200):
            raw = {q.id: rng.choice(pool) for q in mixed_quiz.questions if rng.random() > 0.2}
            result = score_attempt(mixed_quiz, _answers(mixed_quiz, raw))
            assert 0 <= result.percentage <= 100
            assert result.passed == (result.percentage >= mixed_quiz.passing_score)

    def test_to_dict(self, three_question_quiz):
        data = score_attempt(three_question_quiz, {}).to_dict()
        assert data["per_question_correctness"] == [False, False, False]
        assert data["percentage"] == 0
