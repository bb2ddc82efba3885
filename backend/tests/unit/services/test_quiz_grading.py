"""
Unit Tests for quiz grading and the attempt policy
"""
import pytest
from datetime import timedelta

from app.core.exceptions import ValidationError
from app.models.base import utcnow
from app.models.quiz import Quiz, QuizSubmission
from app.services.quiz_service import (
    grade_answers,
    validate_answers,
    evaluate_attempt,
    performance_message,
    marks_per_question,
    default_total_marks,
    export_filename,
    build_export_csv,
    EXPORT_COLUMNS,
)


QUESTIONS = [
    {"question": "2 + 2", "options": ["3", "4", "5"], "correct_answer": 1, "marks": 2},
    {"question": "Capital of France", "options": ["Paris", "Rome"], "correct_answer": 0, "marks": 3},
    {"question": "Largest planet", "options": ["Mars", "Jupiter", "Venus", "Earth"], "correct_answer": 1, "marks": 5},
]


def make_quiz(**overrides) -> Quiz:
    fields = dict(
        title="Weekly quiz",
        questions=QUESTIONS,
        total_marks=10.0,
        max_attempts=3,
        allow_retake=True,
        min_score_to_pass=60.0,
        days_between_attempts=1.0,
    )
    fields.update(overrides)
    return Quiz(**fields)


def make_attempt(score: float, days_ago: float, attempt_number: int = 1) -> QuizSubmission:
    return QuizSubmission(
        score=score,
        percentage=score * 10,
        total_marks=10.0,
        attempt_number=attempt_number,
        submitted_at=utcnow() - timedelta(days=days_ago),
        answers=[],
    )


class TestGrading:

    def test_all_correct(self):
        result = grade_answers(QUESTIONS, [1, 0, 1], 10.0)

        assert result["score"] == 10.0
        assert result["percentage"] == 100.0
        assert all(a["is_correct"] for a in result["answers"])

    def test_partial_score_uses_question_marks(self):
        result = grade_answers(QUESTIONS, [1, 1, 0], 10.0)

        assert result["score"] == 2.0
        assert result["percentage"] == 20.0
        assert [a["marks_awarded"] for a in result["answers"]] == [2, 0, 0]

    def test_breakdown_keeps_question_text(self):
        result = grade_answers(QUESTIONS, [0, 0, 0], 10.0)
        first = result["answers"][0]

        assert first["question_text"] == "2 + 2"
        assert first["selected_option"] == 0
        assert first["correct_answer"] == 1
        assert first["is_correct"] is False

    def test_score_capped_at_total(self):
        result = grade_answers(QUESTIONS, [1, 0, 1], 5.0)

        assert result["score"] == 5.0
        assert result["percentage"] == 100.0

    def test_questions_without_marks_share_total(self):
        questions = [dict(q, marks=0) for q in QUESTIONS[:2]]

        assert marks_per_question(questions[0], 10.0, 2) == 5.0
        assert grade_answers(questions, [1, 1], 10.0)["score"] == 5.0

    def test_default_total_marks(self):
        assert default_total_marks(QUESTIONS) == 10.0
        assert default_total_marks([dict(q, marks=0) for q in QUESTIONS]) == 3.0
        assert default_total_marks([{"question": "x", "options": ["a", "b"], "correct_answer": 0}]) == 1.0


class TestAnswerValidation:

    def test_wrong_answer_count(self):
        with pytest.raises(ValidationError, match="Expected 3 answers, got 2"):
            validate_answers(QUESTIONS, [1, 0])

    def test_out_of_range_option(self):
        with pytest.raises(ValidationError, match="question 2"):
            validate_answers(QUESTIONS, [1, 5, 0])

    def test_non_integer_answer(self):
        with pytest.raises(ValidationError):
            validate_answers(QUESTIONS, [1, "a", 0])

    def test_boolean_is_not_an_option_index(self):
        with pytest.raises(ValidationError):
            validate_answers(QUESTIONS, [True, 0, 0])

    def test_valid_answers_pass(self):
        validate_answers(QUESTIONS, [0, 1, 3])


class TestAttemptPolicy:

    def test_first_attempt_allowed(self):
        result = evaluate_attempt(make_quiz(), 0, None)

        assert result.can_attempt is True
        assert result.next_attempt_number == 1
        assert result.attempts_remaining == 3

    def test_max_attempts_reached(self):
        result = evaluate_attempt(make_quiz(max_attempts=2), 2, make_attempt(2.0, days_ago=5))

        assert result.can_attempt is False
        assert result.reason == "Maximum attempts (2) reached for this quiz"
        assert result.attempts_remaining == 0

    def test_single_attempt_quiz_ignores_policy(self):
        result = evaluate_attempt(make_quiz(max_attempts=1, allow_retake=False), 1, make_attempt(2.0, days_ago=0))

        assert result.can_attempt is False
        assert "Maximum attempts (1)" in result.reason

    def test_retakes_disabled(self):
        result = evaluate_attempt(make_quiz(allow_retake=False), 1, make_attempt(2.0, days_ago=5))

        assert result.can_attempt is False
        assert result.reason == "Retakes are not allowed for this quiz"

    def test_already_passed(self):
        result = evaluate_attempt(make_quiz(), 1, make_attempt(7.0, days_ago=5))

        assert result.can_attempt is False
        assert result.reason == "You already passed this quiz with 70.0% score"

    def test_cooldown(self):
        result = evaluate_attempt(make_quiz(days_between_attempts=2.0), 1, make_attempt(2.0, days_ago=0.5))

        assert result.can_attempt is False
        assert result.reason.startswith("Please wait 1.5")

    def test_retake_allowed_after_cooldown(self):
        result = evaluate_attempt(make_quiz(), 1, make_attempt(2.0, days_ago=2))

        assert result.can_attempt is True
        assert result.next_attempt_number == 2

    def test_limit_checked_before_pass(self):
        result = evaluate_attempt(make_quiz(max_attempts=2), 2, make_attempt(9.0, days_ago=5))

        assert result.reason.startswith("Maximum attempts")

    def test_pass_checked_before_cooldown(self):
        result = evaluate_attempt(make_quiz(days_between_attempts=3.0), 1, make_attempt(8.0, days_ago=0.1))

        assert result.can_attempt is False
        assert result.reason == "You already passed this quiz with 80.0% score"


class TestPerformanceAndExport:

    @pytest.mark.parametrize("percentage,message", [
        (95, "Excellent!"),
        (90, "Excellent!"),
        (85, "Very Good!"),
        (72, "Good!"),
        (60, "Satisfactory"),
        (50, "Needs Improvement"),
        (10, "Keep Practicing"),
    ])
    def test_performance_bands(self, percentage, message):
        assert performance_message(percentage) == message

    def test_export_filename_slug(self):
        assert export_filename("Unit 3: Algebra & Graphs!") == "quiz-submissions-unit-3-algebra-graphs.csv"
        assert export_filename("!!!") == "quiz-submissions-quiz.csv"

    def test_export_csv_header_only(self):
        csv_text = build_export_csv(make_quiz(), [])

        assert csv_text.strip() == ",".join(EXPORT_COLUMNS)
