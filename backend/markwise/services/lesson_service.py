"""
Markwise Backend — Lesson Plan & Slide Service
===============================================

What:  Generates lesson plans from a topic (optionally tailored to class
       performance data) and turns a lesson plan into a slide deck.
How:   One LLM call per operation; the result is stored and returned.
       Lesson plans are free text. Slides must come back as a JSON array
       of slide objects and are validated before anything is stored.
"""

import json
import logging
import re
from typing import Any, Dict, List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from markwise.exceptions import DatabaseError, LLMResponseError, MarkwiseError, ValidationError
from markwise.models.lesson import LessonPlan, SlideDeck
from markwise.schemas.lesson import (
    LessonPlanOut,
    LessonPlanRequest,
    SlideCustomization,
    SlidesRequest,
    SlidesResponse,
)
from markwise.services.llm_base import LLMService
from markwise.services.prompts import (
    LESSON_PLAN_SYSTEM_PROMPT,
    SLIDES_SYSTEM_PROMPT,
    lesson_plan_user_prompt,
    slides_user_prompt,
)

logger = logging.getLogger(__name__)

DEFAULT_DECK_TITLE = "Lesson Slides"

_FENCE_PATTERN = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)


def strip_code_fences(text: str) -> str:
    """Removes a surrounding ``` or ```json fence, if any."""
    return _FENCE_PATTERN.sub("", text.strip()).strip()


def parse_slides(raw: str) -> List[Dict[str, Any]]:
    """
    Slide list from the model's reply.

    Accepts a bare JSON array or an object with a "slides" array (JSON mode
    on some providers wraps arrays this way).

    Raises:
        LLMResponseError when the reply is not JSON or holds no slides.
    """
    try:
        data = json.loads(strip_code_fences(raw))
    except ValueError as e:
        logger.error("Slides reply is not valid JSON: %s", str(e))
        raise LLMResponseError(
            message="AI returned invalid JSON format",
            context={"preview": raw[:200]},
        )

    if isinstance(data, dict) and isinstance(data.get("slides"), list):
        data = data["slides"]
    if (
        not isinstance(data, list)
        or not data
        or not all(isinstance(slide, dict) for slide in data)
    ):
        raise LLMResponseError(
            message="AI returned invalid slides format",
            context={"type": type(data).__name__},
        )
    return data


class LessonService:

    async def generate_lesson_plan(
        self,
        db: AsyncSession,
        llm: LLMService,
        request: LessonPlanRequest,
    ) -> LessonPlanOut:
        """
        Generates and stores a lesson plan.

        Raises:
            ValidationError: subject, topic or teacherId missing
            LLMServiceError, CircuitBreakerOpenError, ConfigurationError
            DatabaseError
        """
        if not request.subject or not request.topic or not request.teacher_id:
            raise ValidationError(message="Missing required fields: subject, topic, teacherId")

        logger.info(
            "Generating lesson plan: subject=%s topic=%s performance_data=%s",
            request.subject,
            request.topic,
            request.performance_summary is not None,
        )
        plan_content = await llm.complete(
            [
                {"role": "system", "content": LESSON_PLAN_SYSTEM_PROMPT},
                {
                    "role": "user",
                    "content": lesson_plan_user_prompt(
                        subject=request.subject,
                        topic=request.topic,
                        duration=request.duration,
                        grade_level=request.grade_level,
                        learning_objectives=request.learning_objectives,
                        prior_knowledge=request.prior_knowledge,
                        performance_summary=request.performance_summary,
                    ),
                },
            ],
            temperature=0.7,
            max_tokens=2000,
        )

        try:
            lesson_plan = LessonPlan(
                teacher_id=request.teacher_id,
                classroom_id=request.classroom_id,
                subject=request.subject,
                topic=request.topic,
                title=f"{request.topic} ({request.subject})",
                grade_level=request.grade_level,
                plan_content=plan_content,
                performance_summary=request.performance_summary,
            )
            db.add(lesson_plan)
            await db.flush()
        except Exception as e:
            logger.error("Failed to store lesson plan: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not save the lesson plan. Please try again.",
                context={"error_type": type(e).__name__},
            )

        logger.info("Lesson plan %s stored (%d chars)", lesson_plan.id, len(plan_content))
        return LessonPlanOut.model_validate(lesson_plan)

    async def generate_slides(
        self,
        db: AsyncSession,
        llm: LLMService,
        request: SlidesRequest,
    ) -> SlidesResponse:
        """
        Converts a lesson plan into slides and stores the deck.

        Raises:
            ValidationError: lessonPlanId or lessonPlanContent missing
            LLMResponseError: the reply was not a usable slide list
            LLMServiceError, CircuitBreakerOpenError, ConfigurationError
            DatabaseError
        """
        if not request.lesson_plan_id or not request.lesson_plan_content:
            raise ValidationError(message="Missing required fields")

        customization = request.customization or SlideCustomization()
        raw = await llm.complete(
            [
                {"role": "system", "content": SLIDES_SYSTEM_PROMPT},
                {
                    "role": "user",
                    "content": slides_user_prompt(
                        request.lesson_plan_content,
                        slides_count=customization.slides_count,
                        include_notes=customization.include_notes,
                    ),
                },
            ],
            temperature=0.8,
            max_tokens=4000,
        )
        slides = parse_slides(raw)

        try:
            result = await db.execute(
                select(LessonPlan.title, LessonPlan.teacher_id).where(
                    LessonPlan.id == request.lesson_plan_id
                )
            )
            plan = result.one_or_none()
            title = DEFAULT_DECK_TITLE
            teacher_id = None
            if plan is not None:
                title = plan.title or DEFAULT_DECK_TITLE
                teacher_id = plan.teacher_id

            deck = SlideDeck(
                lesson_plan_id=request.lesson_plan_id,
                teacher_id=teacher_id,
                title=title,
                slides=slides,
                theme=customization.theme,
            )
            db.add(deck)
            await db.flush()
        except MarkwiseError:
            raise
        except Exception as e:
            logger.error("Failed to store slide deck: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not save the slides. Please try again.",
                context={"lesson_plan_id": str(request.lesson_plan_id)},
            )

        logger.info("Slide deck %s stored with %d slides", deck.id, len(slides))
        return SlidesResponse(
            slide_deck_id=deck.id,
            slides=slides,
            slide_count=len(slides),
        )


lesson_service = LessonService()
