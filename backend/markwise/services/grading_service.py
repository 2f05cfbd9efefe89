"""
Markwise Backend — Grading Service
===================================

What:  Grades one submission against a rubric with the LLM and records
       the grade.

Orchestration Flow (POST /api/grade_submission):
    ┌──────────────┐    ┌──────────────┐    ┌──────────────┐    ┌─────────┐
    │ Assignment & │───▶│  LLM (JSON)  │───▶│ Parse, clamp │───▶│  Store  │
    │ grading scale│    │  grading     │    │ letter grade │    │ (grade) │
    └──────────────┘    └──────────────┘    └──────────────┘    └─────────┘

Scores are points out of the assignment's max_score (100 when there is no
assignment); the letter grade uses the classroom's scale when it has one.
"""

import logging
from typing import Dict, Optional, Tuple
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from markwise.config import settings
from markwise.exceptions import DatabaseError, LLMTimeoutError, MarkwiseError, ValidationError
from markwise.models.classroom import Assignment, Classroom
from markwise.models.submission import Grade
from markwise.schemas.grading import GradeResponse, GradeSubmissionRequest, Recommendation
from markwise.services.grading import (
    DEFAULT_GRADING_SCALE,
    DEFAULT_MAX_SCORE,
    compose_feedback,
    letter_grade,
    parse_grading_response,
    percentage,
)
from markwise.services.llm_base import LLMService
from markwise.services.prompts import grading_system_prompt, grading_user_prompt

logger = logging.getLogger(__name__)


class GradingService:

    async def load_grading_context(
        self,
        db: AsyncSession,
        assignment_id: Optional[UUID],
    ) -> Tuple[int, Dict[str, float]]:
        """
        (max_score, grading_scale) for an assignment.

        A missing assignment, or one outside a classroom, grades out of 100
        on the default scale.
        """
        max_score = DEFAULT_MAX_SCORE
        scale: Dict[str, float] = dict(DEFAULT_GRADING_SCALE)
        if not assignment_id:
            return max_score, scale

        result = await db.execute(
            select(Assignment.max_score, Classroom.grading_scale)
            .outerjoin(Classroom, Assignment.classroom_id == Classroom.id)
            .where(Assignment.id == assignment_id)
        )
        row = result.one_or_none()
        if row is None:
            logger.warning("Assignment %s not found; grading with defaults", assignment_id)
            return max_score, scale

        assignment_max, classroom_scale = row
        if assignment_max and assignment_max > 0:
            max_score = assignment_max
        if classroom_scale:
            scale = dict(classroom_scale)
        return max_score, scale

    async def grade_submission(
        self,
        db: AsyncSession,
        llm: LLMService,
        request: GradeSubmissionRequest,
    ) -> GradeResponse:
        """
        Grades a submission and inserts a grades row.

        Raises:
            ValidationError: a required field is missing
            LLMTimeoutError: the provider exceeded GRADING_TIMEOUT
            LLMServiceError, CircuitBreakerOpenError, ConfigurationError
            DatabaseError: the grade could not be stored
        """
        if not all([
            request.submission_text,
            request.rubric,
            request.submission_id,
            request.teacher_id,
            request.student_id,
        ]):
            raise ValidationError(message="Missing required fields")

        max_score, scale = await self.load_grading_context(db, request.assignment_id)
        logger.info(
            "Grading submission %s (max_score=%d)", request.submission_id, max_score
        )

        try:
            raw = await llm.complete(
                [
                    {"role": "system", "content": grading_system_prompt(max_score)},
                    {
                        "role": "user",
                        "content": grading_user_prompt(
                            request.rubric, request.submission_text, max_score
                        ),
                    },
                ],
                temperature=0.7,
                max_tokens=2000,
                json_mode=True,
                timeout=settings.grading_timeout,
            )
        except LLMTimeoutError as e:
            raise LLMTimeoutError(
                message="AI grading request timed out. Please try again.",
                context=e.context,
            ) from e

        result = parse_grading_response(raw, max_score)
        pct = percentage(result.score, max_score)
        letter = letter_grade(pct, scale)
        feedback = compose_feedback(
            result.detailed_feedback,
            result.strengths,
            result.weaknesses,
            result.recommendations,
        )

        try:
            grade = Grade(
                submission_id=request.submission_id,
                teacher_id=request.teacher_id,
                student_id=request.student_id,
                score=result.score,
                feedback=feedback,
                rubric=request.rubric,
                insights={
                    "strengths": result.strengths,
                    "weaknesses": result.weaknesses,
                    "recommendations": result.recommendations,
                    "detailed_feedback": result.detailed_feedback,
                    "letter_grade": letter,
                    "percentage": pct,
                },
            )
            db.add(grade)
            await db.flush()
        except MarkwiseError:
            raise
        except Exception as e:
            logger.error("Failed to store grade: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not save the grade. Please try again.",
                context={"submission_id": str(request.submission_id)},
            )

        logger.info(
            "Grade %s stored: %d/%d (%d%%, %s)", grade.id, result.score, max_score, pct, letter
        )
        return GradeResponse(
            feedback=feedback,
            score=result.score,
            max_score=max_score,
            percentage=pct,
            letter_grade=letter,
            strengths=result.strengths,
            weaknesses=result.weaknesses,
            recommendations=[Recommendation(**rec) for rec in result.recommendations],
            detailed_feedback=result.detailed_feedback,
            grading_scale=scale,
            grade_id=grade.id,
        )


grading_service = GradingService()
