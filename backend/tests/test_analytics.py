"""
Markwise Backend — Analytics Unit Tests
========================================

What:  Tests for trend, time ranges, grade distribution, the class summary,
       the teacher dashboard and the CSV export.
How:   The computations are pure; transient ORM rows are passed straight
       in. The service test only covers classroom ownership.
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock
from uuid import uuid4

import pytest

from markwise.exceptions import NotFoundError, ValidationError
from markwise.models.classroom import Assignment, Classroom, ClassroomStudent
from markwise.models.profile import Profile
from markwise.models.submission import Submission
from markwise.schemas.analytics import AssignmentStats, StudentPerformance
from markwise.services.analytics_service import (
    AnalyticsService,
    GradeRecord,
    analytics_csv,
    class_performance,
    grade_distribution,
    since_for,
    teacher_analytics,
    trend_of,
)

NOW = datetime(2025, 3, 14, 12, 0, tzinfo=timezone.utc)


def _at(days_ago):
    return NOW - timedelta(days=days_ago)


class TestTrend:

    def test_needs_four_grades(self):
        assert trend_of([10, 20, 95]) == "stable"

    def test_up_and_down(self):
        assert trend_of([60, 62, 70, 75]) == "up"
        assert trend_of([90, 88, 80, 70]) == "down"

    def test_within_five_points_is_stable(self):
        assert trend_of([70, 70, 75, 75]) == "stable"

    def test_odd_count_splits_at_floor(self):
        # first half [60, 60], second half [60, 70, 80] → 60 vs 70
        assert trend_of([60, 60, 60, 70, 80]) == "up"


class TestSinceFor:

    def test_windows(self):
        assert since_for("7d", NOW) == NOW - timedelta(days=7)
        assert since_for("90d", NOW) == NOW - timedelta(days=90)
        assert since_for("all", NOW) is None

    def test_invalid_range(self):
        with pytest.raises(ValidationError, match="Invalid time range"):
            since_for("1y")


class TestGradeDistribution:

    def test_default_bands(self):
        buckets = grade_distribution([95, 90, 85, 72, 61, 30])
        assert [(b.letter, b.label, b.count) for b in buckets] == [
            ("A", "A (90+)", 2),
            ("B", "B (80-89)", 1),
            ("C", "C (70-79)", 1),
            ("D", "D (60-69)", 1),
            ("F", "F (0-59)", 1),
        ]

    def test_custom_scale(self):
        buckets = grade_distribution([88, 50], {"Pass": 50, "Distinction": 85})
        assert [(b.label, b.count) for b in buckets] == [
            ("Distinction (85+)", 1),
            ("Pass (50-84)", 1),
        ]


class TestClassPerformance:

    def test_no_students(self):
        result = class_performance([], [])
        assert result.message == "No students enrolled in this classroom"
        assert result.total_students == 0

    def test_summary_on_raw_scores(self):
        ana = Profile(id=uuid4(), full_name="Ana", role="student")
        ben = Profile(id=uuid4(), full_name="Ben", role="student")
        cy = Profile(id=uuid4(), full_name=None, role="student")
        grades = [
            GradeRecord(uuid4(), ana.id, 95, _at(1)),
            GradeRecord(uuid4(), ana.id, 92, _at(2)),
            GradeRecord(uuid4(), ben.id, 65, _at(1)),
        ]

        result = class_performance([ana, ben, cy], grades)

        assert result.total_students == 3
        # Ana 94 (93.5 rounds up), Ben 65, the third student has no grades → 0
        assert result.average_score == round((94 + 65 + 0) / 3)
        assert result.excelling_names == ["Ana"]
        assert result.struggling_names == ["Ben", "Unknown"]
        assert result.grade_distribution == {"A": 1, "B": 0, "C": 0, "D": 1, "F": 1}
        assert result.message is None

    def test_class_average_rounds_half_up(self):
        ana = Profile(id=uuid4(), full_name="Ana", role="student")
        ben = Profile(id=uuid4(), full_name="Ben", role="student")
        grades = [
            GradeRecord(uuid4(), ana.id, 80, _at(1)),
            GradeRecord(uuid4(), ben.id, 81, _at(1)),
        ]

        assert class_performance([ana, ben], grades).average_score == 81


class TestTeacherAnalytics:

    def setup_method(self):
        self.teacher_id = uuid4()
        self.room = Classroom(
            id=uuid4(), teacher_id=self.teacher_id, name="Period 1",
            grading_scale={"A": 85, "B": 70, "C": 50, "F": 0},
        )
        self.other_room = Classroom(id=uuid4(), teacher_id=self.teacher_id, name="Period 2")
        self.ana = Profile(id=uuid4(), full_name="Ana", email="ana@school.test", role="student")
        self.ben = Profile(id=uuid4(), full_name="Ben", email="ben@school.test", role="student")
        self.enrolments = [
            ClassroomStudent(classroom_id=self.room.id, student_id=self.ana.id),
            ClassroomStudent(classroom_id=self.room.id, student_id=self.ben.id),
        ]
        self.essay = Assignment(
            id=uuid4(), classroom_id=self.room.id, teacher_id=self.teacher_id,
            title="Essay", max_score=50,
        )
        self.quiz = Assignment(
            id=uuid4(), classroom_id=self.room.id, teacher_id=self.teacher_id,
            title="Quiz", max_score=0,
        )
        self.submissions = [
            Submission(id=uuid4(), assignment_id=self.essay.id, student_id=self.ana.id, file_url="u"),
            Submission(id=uuid4(), assignment_id=self.essay.id, student_id=self.ben.id, file_url="u"),
            Submission(id=uuid4(), assignment_id=self.quiz.id, student_id=self.ana.id, file_url="u"),
        ]
        s1, s2, s3 = self.submissions
        self.grades = [
            GradeRecord(s1.id, self.ana.id, 45, _at(3), self.essay.id),
            GradeRecord(s2.id, self.ben.id, 30, _at(2), self.essay.id),
            GradeRecord(s3.id, self.ana.id, 80, _at(1), self.quiz.id),
        ]

    def _build(self, classroom_id=None):
        return teacher_analytics(
            [self.room, self.other_room],
            self.enrolments,
            [self.ana, self.ben],
            self.submissions,
            self.grades,
            [self.essay, self.quiz],
            classroom_id=classroom_id,
            time_range="30d",
        )

    def test_overall(self):
        result = self._build()

        assert result.overall.total_students == 2
        assert result.overall.total_submissions == 3
        assert result.overall.graded_submissions == 3
        assert result.overall.pending_submissions == 0
        # 90%, 60%, 80% (quiz max 0 counts as 100)
        assert result.overall.avg_class_score == 77

    def test_students_sorted_with_percentages(self):
        result = self._build()

        ana, ben = result.students
        assert ana.name == "Ana"
        assert [g.score for g in ana.grades] == [90, 80]
        assert [g.assignment_title for g in ana.grades] == ["Essay", "Quiz"]
        assert ana.avg_score == 85
        assert ana.trend == "stable"
        assert ben.avg_score == 60

    def test_assignments(self):
        result = self._build()

        essay, quiz = result.assignments
        assert essay.title == "Essay"
        assert essay.submission_count == 2
        assert essay.avg_score == 75
        assert essay.completion_rate == 100
        assert quiz.max_score == 100
        assert quiz.completion_rate == 50

    def test_classrooms(self):
        result = self._build()

        period1, period2 = result.classrooms
        assert period1.student_count == 2
        assert period1.avg_score == 77
        assert period2.student_count == 0
        assert period2.avg_score == 0

    def test_distribution_uses_classroom_scale(self):
        result = self._build(classroom_id=self.room.id)

        assert [(b.label, b.count) for b in result.grade_distribution] == [
            ("A (85+)", 1),
            ("B (70-84)", 0),
            ("C (50-69)", 1),
            ("F (0-49)", 0),
        ]

    def test_completion_rate_capped(self):
        extra = [
            Submission(id=uuid4(), assignment_id=self.essay.id, student_id=self.ana.id, file_url="u")
            for _ in range(5)
        ]
        self.submissions.extend(extra)

        essay = next(a for a in self._build().assignments if a.title == "Essay")
        assert essay.completion_rate == 100


class TestAnalyticsCsv:

    def test_layout(self):
        students = [StudentPerformance(
            id=uuid4(), name='Ana "AJ" Lima', email="ana@school.test",
            avg_score=85, total_submissions=2, trend="up",
        )]
        assignments = [AssignmentStats(
            id=uuid4(), title="Essay, draft 1", avg_score=75,
            submission_count=2, max_score=50, completion_rate=100,
        )]

        csv_text = analytics_csv(students, assignments)

        assert csv_text == (
            "Student Name,Email,Average Score,Total Submissions,Trend\n"
            '"Ana ""AJ"" Lima","ana@school.test",85,2,up\n'
            "\n"
            "\n"
            "Assignment Analytics\n"
            "Assignment Title,Average Score,Submissions,Completion Rate\n"
            '"Essay, draft 1",75,2,100%\n'
        )


class TestAnalyticsService:

    @pytest.mark.asyncio
    async def test_foreign_classroom_rejected(self, mock_db_session):
        result = MagicMock()
        result.scalars.return_value.all.return_value = []
        mock_db_session.execute.return_value = result

        with pytest.raises(NotFoundError):
            await AnalyticsService().teacher_analytics(mock_db_session, uuid4(), uuid4(), "30d")

    @pytest.mark.asyncio
    async def test_teacher_without_classrooms(self, mock_db_session):
        result = MagicMock()
        result.scalars.return_value.all.return_value = []
        mock_db_session.execute.return_value = result

        analytics = await AnalyticsService().teacher_analytics(mock_db_session, uuid4())

        assert analytics.overall.total_students == 0
        assert analytics.students == []
        assert mock_db_session.execute.await_count == 1

    @pytest.mark.asyncio
    async def test_invalid_range_before_queries(self, mock_db_session):
        with pytest.raises(ValidationError):
            await AnalyticsService().teacher_analytics(mock_db_session, uuid4(), None, "2w")
        mock_db_session.execute.assert_not_awaited()
