"""
Analytics contracts for the lesson planner and the teacher dashboard.
"""

import uuid
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import Field

from markwise.schemas.common import CamelModel


class ClassPerformance(CamelModel):
    """Class summary fed into lesson-plan generation."""
    total_students: int = 0
    average_score: int = 0
    struggling_students: int = 0
    excelling_students: int = 0
    struggling_names: List[str] = Field(default_factory=list)
    excelling_names: List[str] = Field(default_factory=list)
    grade_distribution: Dict[str, int] = Field(default_factory=dict)
    message: Optional[str] = None


class OverallStats(CamelModel):
    total_students: int = 0
    total_submissions: int = 0
    graded_submissions: int = 0
    pending_submissions: int = 0
    avg_class_score: int = 0


class ClassroomStats(CamelModel):
    id: uuid.UUID
    name: str
    student_count: int
    avg_score: int
    grading_scale: Optional[Dict[str, float]] = None


class StudentGradePoint(CamelModel):
    score: int
    created_at: datetime
    assignment_title: str


class StudentPerformance(CamelModel):
    id: uuid.UUID
    name: str
    email: str
    grades: List[StudentGradePoint] = Field(default_factory=list)
    avg_score: int
    total_submissions: int
    # up, down, stable
    trend: str


class AssignmentStats(CamelModel):
    id: uuid.UUID
    title: str
    avg_score: int
    submission_count: int
    max_score: int
    completion_rate: int


class DistributionBucket(CamelModel):
    letter: str
    label: str
    count: int


class TeacherAnalytics(CamelModel):
    time_range: str
    classroom_id: Optional[uuid.UUID] = None
    overall: OverallStats
    classrooms: List[ClassroomStats] = Field(default_factory=list)
    students: List[StudentPerformance] = Field(default_factory=list)
    assignments: List[AssignmentStats] = Field(default_factory=list)
    grade_distribution: List[DistributionBucket] = Field(default_factory=list)
