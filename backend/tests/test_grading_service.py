"""
Markwise Backend — Grading Service Unit Tests
==============================================

What:  Tests for the grade_submission workflow.
How:   Mock DB session and mock LLM provider; the assignment lookup is
       answered through mock_db_session.execute.

What we test:
    ✅ Score scaled to the assignment's max_score, letter from the classroom scale
    ✅ Defaults when there is no assignment
    ✅ Missing fields rejected before any AI call
    ✅ Grading timeout surfaces a grading-specific message
    ✅ Grade row carries the insights
"""

import json
from unittest.mock import MagicMock
from uuid import uuid4

import pytest

from markwise.config import settings
from markwise.exceptions import DatabaseError, LLMTimeoutError, ValidationError
from markwise.models.submission import Grade
from markwise.schemas.grading import GradeSubmissionRequest
from markwise.services.grading import DEFAULT_GRADING_SCALE
from markwise.services.grading_service import GradingService


def _request(**overrides):
    fields = {
        "submission_text": "Photosynthesis turns light into sugar.",
        "rubric": "Accuracy 30, Clarity 20",
        "submission_id": uuid4(),
        "teacher_id": uuid4(),
        "student_id": uuid4(),
    }
    fields.update(overrides)
    return GradeSubmissionRequest(**fields)


GRADING_REPLY = json.dumps({
    "score": 45,
    "overall_feedback": "Accurate and clear.",
    "detailed_feedback": "Covers the light reactions well.",
    "strengths": ["Accurate terminology"],
    "weaknesses": ["No diagram"],
    "recommendations": [{"topic": "Calvin cycle", "resource": "Khan Academy", "priority": "medium"}],
})


class TestGradeSubmission:

    def setup_method(self):
        self.service = GradingService()

    @pytest.mark.asyncio
    async def test_grades_against_assignment_and_classroom_scale(self, mock_db_session, mock_llm):
        scale = {"A": 85, "B": 70, "C": 55, "F": 0}
        mock_db_session.execute.return_value.one_or_none.return_value = (50, scale)
        mock_llm.complete.return_value = GRADING_REPLY

        result = await self.service.grade_submission(
            mock_db_session, mock_llm, _request(assignment_id=uuid4())
        )

        assert result.score == 45
        assert result.max_score == 50
        assert result.percentage == 90
        assert result.letter_grade == "A"
        assert result.grading_scale == scale
        assert result.recommendations[0].topic == "Calvin cycle"
        assert result.feedback.startswith("Covers the light reactions well.")
        assert "✅ STRENGTHS:" in result.feedback
        assert result.message == "Grade generated and saved successfully"

        grade = mock_db_session.add.call_args[0][0]
        assert isinstance(grade, Grade)
        assert grade.score == 45
        assert grade.insights["letter_grade"] == "A"
        assert grade.insights["percentage"] == 90
        assert grade.insights["strengths"] == ["Accurate terminology"]
        assert result.grade_id == grade.id
        mock_db_session.flush.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_llm_called_in_json_mode_with_grading_timeout(self, mock_db_session, mock_llm):
        mock_llm.complete.return_value = GRADING_REPLY

        await self.service.grade_submission(mock_db_session, mock_llm, _request())

        kwargs = mock_llm.complete.call_args.kwargs
        assert kwargs["json_mode"] is True
        assert kwargs["temperature"] == 0.7
        assert kwargs["max_tokens"] == 2000
        assert kwargs["timeout"] == settings.grading_timeout
        messages = mock_llm.complete.call_args.args[0]
        assert messages[0]["role"] == "system"
        assert "Accuracy 30, Clarity 20" in messages[1]["content"]

    @pytest.mark.asyncio
    async def test_no_assignment_uses_defaults(self, mock_db_session, mock_llm):
        mock_llm.complete.return_value = '{"score": 72}'

        result = await self.service.grade_submission(mock_db_session, mock_llm, _request())

        assert result.max_score == 100
        assert result.letter_grade == "C"
        assert result.grading_scale == DEFAULT_GRADING_SCALE
        mock_db_session.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unknown_assignment_uses_defaults(self, mock_db_session, mock_llm):
        mock_db_session.execute.return_value.one_or_none.return_value = None
        mock_llm.complete.return_value = '{"score": 250}'

        result = await self.service.grade_submission(
            mock_db_session, mock_llm, _request(assignment_id=uuid4())
        )

        assert result.max_score == 100
        assert result.score == 100

    @pytest.mark.asyncio
    @pytest.mark.parametrize("missing", [
        "submission_text", "rubric", "submission_id", "teacher_id", "student_id",
    ])
    async def test_missing_field_rejected(self, missing, mock_db_session, mock_llm):
        with pytest.raises(ValidationError, match="Missing required fields"):
            await self.service.grade_submission(
                mock_db_session, mock_llm, _request(**{missing: None})
            )
        mock_llm.complete.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_timeout_message(self, mock_db_session, mock_llm):
        mock_llm.complete.side_effect = LLMTimeoutError()

        with pytest.raises(LLMTimeoutError, match="AI grading request timed out"):
            await self.service.grade_submission(mock_db_session, mock_llm, _request())
        mock_db_session.add.assert_not_called()

    @pytest.mark.asyncio
    async def test_store_failure_wrapped(self, mock_db_session, mock_llm):
        mock_llm.complete.return_value = GRADING_REPLY
        mock_db_session.flush.side_effect = RuntimeError("constraint violated")

        with pytest.raises(DatabaseError):
            await self.service.grade_submission(mock_db_session, mock_llm, _request())


class TestLoadGradingContext:

    @pytest.mark.asyncio
    async def test_non_positive_max_score_ignored(self, mock_db_session):
        mock_db_session.execute.return_value = MagicMock()
        mock_db_session.execute.return_value.one_or_none.return_value = (0, None)

        max_score, scale = await GradingService().load_grading_context(mock_db_session, uuid4())

        assert max_score == 100
        assert scale == DEFAULT_GRADING_SCALE
