"""
Lesson plan and slide deck models.
"""

import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import ForeignKey, Index, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column

from markwise.database import Base
from markwise.models.columns import JSONType, created_at_column, uuid_pk


class LessonPlan(Base):
    __tablename__ = "lesson_plans"

    id: Mapped[uuid.UUID] = uuid_pk()
    teacher_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    classroom_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        ForeignKey("classrooms.id", ondelete="SET NULL"), nullable=True
    )
    subject: Mapped[str] = mapped_column(String(100), nullable=False)
    topic: Mapped[str] = mapped_column(String(255), nullable=False)
    title: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    grade_level: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    plan_content: Mapped[str] = mapped_column(Text, nullable=False)
    # Class performance snapshot the plan was tailored to
    performance_summary: Mapped[Optional[Dict[str, Any]]] = mapped_column(
        JSONType, nullable=True
    )
    created_at: Mapped[datetime] = created_at_column()

    __table_args__ = (Index("idx_lesson_plans_teacher_id", "teacher_id"),)


class SlideDeck(Base):
    __tablename__ = "slide_decks"

    id: Mapped[uuid.UUID] = uuid_pk()
    lesson_plan_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("lesson_plans.id", ondelete="CASCADE"), nullable=False
    )
    teacher_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        ForeignKey("profiles.id", ondelete="CASCADE"), nullable=True
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    slides: Mapped[List[Dict[str, Any]]] = mapped_column(JSONType, nullable=False)
    theme: Mapped[str] = mapped_column(
        String(50), nullable=False, default="professional", server_default=text("'professional'")
    )
    created_at: Mapped[datetime] = created_at_column()

    __table_args__ = (Index("idx_slide_decks_lesson_plan_id", "lesson_plan_id"),)
