"""
Classroom models: classrooms, their enrolments and their assignments.

A classroom may carry its own grading scale (letter → minimum percentage);
grading falls back to the default A/B/C/D/F scale when it is NULL.
"""

import uuid
from datetime import datetime
from typing import Dict, Optional

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column

from markwise.database import Base
from markwise.models.columns import JSONType, created_at_column, uuid_pk


class Classroom(Base):
    __tablename__ = "classrooms"

    id: Mapped[uuid.UUID] = uuid_pk()
    teacher_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    invite_code: Mapped[Optional[str]] = mapped_column(String(20), nullable=True, unique=True)
    grading_scale: Mapped[Optional[Dict[str, int]]] = mapped_column(JSONType, nullable=True)
    created_at: Mapped[datetime] = created_at_column()

    __table_args__ = (Index("idx_classrooms_teacher_id", "teacher_id"),)

    def __repr__(self) -> str:
        return f"<Classroom(id={self.id}, name='{self.name}')>"


class ClassroomStudent(Base):
    __tablename__ = "classroom_students"

    id: Mapped[uuid.UUID] = uuid_pk()
    classroom_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("classrooms.id", ondelete="CASCADE"), nullable=False
    )
    student_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    joined_at: Mapped[datetime] = created_at_column()

    __table_args__ = (
        Index("idx_classroom_students_classroom_id", "classroom_id"),
        Index("idx_classroom_students_student_id", "student_id"),
    )


class Assignment(Base):
    __tablename__ = "assignments"

    id: Mapped[uuid.UUID] = uuid_pk()
    classroom_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        ForeignKey("classrooms.id", ondelete="CASCADE"), nullable=True
    )
    teacher_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    subject: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    max_score: Mapped[int] = mapped_column(
        Integer, nullable=False, default=100, server_default=text("100")
    )
    due_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = created_at_column()

    __table_args__ = (Index("idx_assignments_classroom_id", "classroom_id"),)

    def __repr__(self) -> str:
        return f"<Assignment(id={self.id}, title='{self.title}', max_score={self.max_score})>"
