"""
Unit Tests for Section, Course and Quiz Schemas
"""
import pytest
from datetime import datetime, timedelta, timezone
from pydantic import ValidationError

from app.schemas.academics import SectionCreate, SectionUpdate, CourseCreate, EnrollRequest
from app.schemas.quiz import QuestionIn, QuizCreate

START = datetime(2026, 4, 1, 8, 0)


class TestSectionCreate:

    def test_code_is_normalized(self):
        section = SectionCreate(
            name="Grade 9 B",
            section_code=" g9b ",
            teacher_id="t-1",
            session_start_date=START,
            session_end_date=START + timedelta(days=120),
        )

        assert section.section_code == "G9B"
        assert section.capacity == 30

    def test_window_must_be_ordered(self):
        with pytest.raises(ValidationError) as exc_info:
            SectionCreate(
                name="Grade 9 B",
                section_code="G9B",
                teacher_id="t-1",
                session_start_date=START,
                session_end_date=START,
            )

        assert "Session end date must be after start date" in str(exc_info.value)

    def test_mixed_timezones_are_compared_in_utc(self):
        section = SectionCreate(
            name="Grade 9 B",
            section_code="G9B",
            teacher_id="t-1",
            session_start_date=datetime(2026, 4, 1, 13, 30, tzinfo=timezone(timedelta(hours=5, minutes=30))),
            session_end_date=START + timedelta(hours=1),
        )

        assert section.session_start_date == START
        assert section.session_start_date.tzinfo is None

    def test_mixed_timezones_out_of_order(self):
        with pytest.raises(ValidationError) as exc_info:
            SectionCreate(
                name="Grade 9 B",
                section_code="G9B",
                teacher_id="t-1",
                session_start_date=datetime(2026, 4, 1, 9, 0, tzinfo=timezone.utc),
                session_end_date=START,
            )

        assert "Session end date must be after start date" in str(exc_info.value)

    def test_capacity_limit(self):
        with pytest.raises(ValidationError):
            SectionUpdate(capacity=0)

    def test_update_keeps_missing_code(self):
        assert SectionUpdate(name="Renamed").section_code is None


class TestCourseCreate:

    def test_code_uppercased(self):
        course = CourseCreate(name="Chemistry", code=" chem-1 ", section_id="s-1", teacher_ids=["t-1"])

        assert course.code == "CHEM-1"

    def test_needs_a_teacher(self):
        with pytest.raises(ValidationError):
            CourseCreate(name="Chemistry", section_id="s-1", teacher_ids=[])


class TestEnrollRequest:

    def test_requires_identifier(self):
        with pytest.raises(ValidationError) as exc_info:
            EnrollRequest()

        assert "Either user_number or student_id is required" in str(exc_info.value)

    def test_by_number(self):
        assert EnrollRequest(user_number=1200).user_number == 1200


class TestQuizSchemas:

    def test_answer_must_index_an_option(self):
        with pytest.raises(ValidationError) as exc_info:
            QuestionIn(question="2 + 2?", options=["3", "4"], correct_answer=2)

        assert "correct_answer must index one of the options" in str(exc_info.value)

    def test_question_needs_two_options(self):
        with pytest.raises(ValidationError):
            QuestionIn(question="2 + 2?", options=["4"], correct_answer=0)

    def test_quiz_defaults(self):
        quiz = QuizCreate(
            title="Warm-up",
            questions=[{"question": "2 + 2?", "options": ["3", "4"], "correct_answer": 1}],
            visible_until=START,
        )

        assert quiz.max_attempts == 1
        assert quiz.allow_retake is False
        assert quiz.is_published is True
        assert quiz.total_marks is None
        assert quiz.questions[0].marks == 1
