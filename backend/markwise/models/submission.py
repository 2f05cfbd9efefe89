"""
Submission, rubric and grade models.

Lifecycle of a submission:
    1. Created by the client with status 'processing' and a file URL
    2. Text extraction fills extracted_text and sets status 'completed'
       (or 'failed' with a troubleshooting text)
    3. Grading inserts a grades row referencing it

Grades store the score in points, never as a percentage; percentages and
letter grades are derived from the assignment's max_score and kept in the
insights JSON for display.
"""

import uuid
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import ForeignKey, Index, Integer, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column

from markwise.database import Base
from markwise.models.columns import JSONType, created_at_column, uuid_pk


class Submission(Base):
    __tablename__ = "submissions"

    id: Mapped[uuid.UUID] = uuid_pk()
    assignment_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        ForeignKey("assignments.id", ondelete="SET NULL"), nullable=True
    )
    student_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    file_url: Mapped[str] = mapped_column(Text, nullable=False)
    file_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    extracted_text: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # pending, processing, completed, failed
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="processing", server_default=text("'processing'")
    )
    created_at: Mapped[datetime] = created_at_column()

    __table_args__ = (
        Index("idx_submissions_student_id", "student_id"),
        Index("idx_submissions_assignment_id", "assignment_id"),
    )

    def __repr__(self) -> str:
        return f"<Submission(id={self.id}, status='{self.status}')>"


class Rubric(Base):
    __tablename__ = "rubrics"

    id: Mapped[uuid.UUID] = uuid_pk()
    teacher_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    file_url: Mapped[str] = mapped_column(Text, nullable=False)
    extracted_text: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="processing", server_default=text("'processing'")
    )
    created_at: Mapped[datetime] = created_at_column()


class Grade(Base):
    __tablename__ = "grades"

    id: Mapped[uuid.UUID] = uuid_pk()
    submission_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("submissions.id", ondelete="CASCADE"), nullable=False
    )
    teacher_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    student_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    score: Mapped[int] = mapped_column(Integer, nullable=False)
    feedback: Mapped[str] = mapped_column(Text, nullable=False, default="")
    rubric: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # strengths, weaknesses, recommendations, detailed_feedback,
    # letter_grade, percentage
    insights: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSONType, nullable=True)
    created_at: Mapped[datetime] = created_at_column()

    __table_args__ = (
        Index("idx_grades_student_id_created_at", "student_id", "created_at"),
        Index("idx_grades_submission_id", "submission_id"),
    )

    def __repr__(self) -> str:
        return f"<Grade(id={self.id}, score={self.score})>"
