"""
Grading request/response contracts.

Required fields are declared Optional so that a missing value reaches the
grading service, which answers with a 400 "Missing required fields" the
client already knows how to display.
"""

import uuid
from typing import Dict, List, Optional

from pydantic import Field

from markwise.schemas.common import CamelModel


class Recommendation(CamelModel):
    topic: str = ""
    resource: str = ""
    priority: Optional[str] = None


class GradeSubmissionRequest(CamelModel):
    submission_text: Optional[str] = Field(default=None, description="Extracted submission text")
    rubric: Optional[str] = Field(default=None, description="Rubric text to grade against")
    submission_id: Optional[uuid.UUID] = None
    teacher_id: Optional[uuid.UUID] = None
    student_id: Optional[uuid.UUID] = None
    assignment_id: Optional[uuid.UUID] = Field(
        default=None, description="Supplies max score and classroom grading scale"
    )


class GradeResponse(CamelModel):
    success: bool = True
    feedback: str
    score: int
    max_score: int
    percentage: int
    letter_grade: str
    strengths: List[str] = Field(default_factory=list)
    weaknesses: List[str] = Field(default_factory=list)
    recommendations: List[Recommendation] = Field(default_factory=list)
    detailed_feedback: str = ""
    grading_scale: Dict[str, float]
    grade_id: uuid.UUID
    message: str = "Grade generated and saved successfully"
