"""
Lesson plan and slide deck contracts.

Slides are kept as the dictionaries the model produced (slideNumber, type,
title, subtitle, content, speakerNotes, suggestedImage); the client renders
them directly, so no field is dropped on the way through.
"""

import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from pydantic import Field

from markwise.schemas.common import CamelModel


class LessonPlanRequest(CamelModel):
    subject: Optional[str] = None
    topic: Optional[str] = None
    teacher_id: Optional[uuid.UUID] = None
    duration: Optional[int] = Field(default=None, ge=1, le=600, description="Minutes")
    grade_level: Optional[str] = None
    learning_objectives: Optional[str] = None
    prior_knowledge: Optional[str] = None
    performance_summary: Optional[Dict[str, Any]] = None
    classroom_id: Optional[uuid.UUID] = None


class LessonPlanOut(CamelModel):
    id: uuid.UUID
    teacher_id: uuid.UUID
    classroom_id: Optional[uuid.UUID] = None
    subject: str
    topic: str
    title: Optional[str] = None
    grade_level: Optional[str] = None
    plan_content: str
    performance_summary: Optional[Dict[str, Any]] = None
    created_at: Optional[datetime] = None


class LessonPlanResponse(CamelModel):
    success: bool = True
    lesson_plan: LessonPlanOut


class SlideCustomization(CamelModel):
    theme: str = "professional"
    # "auto" asks for a 15-20 slide deck
    slides_count: Union[int, str] = "auto"
    include_notes: bool = True


class SlidesRequest(CamelModel):
    lesson_plan_id: Optional[uuid.UUID] = None
    lesson_plan_content: Optional[str] = None
    customization: Optional[SlideCustomization] = None


class SlidesResponse(CamelModel):
    success: bool = True
    slide_deck_id: uuid.UUID
    slides: List[Dict[str, Any]]
    slide_count: int
    message: str = "Slides generated successfully"
