"""
Tutor chat contracts.
"""

import uuid
from typing import Any, Dict, List, Optional

from pydantic import Field

from markwise.schemas.common import CamelModel


class ChatRequest(CamelModel):
    student_id: Optional[uuid.UUID] = None
    message: Optional[str] = Field(default=None, max_length=8000)
    conversation_id: Optional[uuid.UUID] = Field(
        default=None, description="Omit to start a new conversation"
    )


class RecentAssignment(CamelModel):
    title: str
    subject: Optional[str] = None
    score: int
    max_score: int
    percentage: int
    feedback: Optional[str] = None


class SubjectPerformance(CamelModel):
    total: int = 0
    count: int = 0
    avg: int = 0


class StudentContext(CamelModel):
    """Snapshot of the student's record that grounds the tutor's replies."""
    student_name: str
    grade_level: str
    overall_average: int
    strengths: List[str] = Field(default_factory=list)
    weaknesses: List[str] = Field(default_factory=list)
    recent_assignments: List[RecentAssignment] = Field(default_factory=list)
    subject_performance: Dict[str, SubjectPerformance] = Field(default_factory=dict)


class ChatResponse(CamelModel):
    success: bool = True
    response: str
    conversation_id: uuid.UUID
    context_used: StudentContext
