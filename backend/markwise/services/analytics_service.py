"""
Markwise Backend — Analytics Service
=====================================

What:  Class and teacher-level performance figures: the class summary the
       lesson planner feeds into prompts, the teacher analytics dashboard
       and its CSV export.
How:   Each figure is a pure function over rows already loaded; the
       AnalyticsService methods only run the queries and hand the rows in.

Scores:
    Grades store points. Dashboard figures convert them to percentages of
    the assignment's max_score (100 when missing or non-positive). The
    lesson-planner class summary averages raw scores.

Trend:
    With four or more grades, the mean of the later half is compared with
    the mean of the earlier half (split at floor(n/2)): more than five
    points higher is "up", more than five lower is "down".
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, List, Mapping, Optional, Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from markwise.exceptions import DatabaseError, MarkwiseError, NotFoundError, ValidationError
from markwise.models.classroom import Assignment, Classroom, ClassroomStudent
from markwise.models.profile import Profile
from markwise.models.submission import Grade, Submission
from markwise.schemas.analytics import (
    AssignmentStats,
    ClassPerformance,
    ClassroomStats,
    DistributionBucket,
    OverallStats,
    StudentGradePoint,
    StudentPerformance,
    TeacherAnalytics,
)
from markwise.services.grading import DEFAULT_GRADING_SCALE, round_half_up, safe_max_score

logger = logging.getLogger(__name__)

TIME_RANGES = {"7d": 7, "30d": 30, "90d": 90, "all": None}

STRUGGLING_BELOW = 70
EXCELLING_FROM = 90
TREND_MIN_GRADES = 4
TREND_THRESHOLD = 5


@dataclass
class GradeRecord:
    """A grade with the assignment its submission belongs to."""
    submission_id: UUID
    student_id: UUID
    score: int
    created_at: datetime
    assignment_id: Optional[UUID] = None


def since_for(time_range: str, now: Optional[datetime] = None) -> Optional[datetime]:
    """Start of the window for a time range; None for "all"."""
    if time_range not in TIME_RANGES:
        raise ValidationError(
            message=f"Invalid time range '{time_range}'. Must be one of: {', '.join(TIME_RANGES)}",
            field="time_range",
        )
    days = TIME_RANGES[time_range]
    if days is None:
        return None
    return (now or datetime.now(timezone.utc)) - timedelta(days=days)


def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values) if values else 0


def trend_of(scores: Sequence[float]) -> str:
    if len(scores) < TREND_MIN_GRADES:
        return "stable"
    midpoint = len(scores) // 2
    first = _mean(scores[:midpoint])
    second = _mean(scores[midpoint:])
    if second > first + TREND_THRESHOLD:
        return "up"
    if second < first - TREND_THRESHOLD:
        return "down"
    return "stable"


def _fmt(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


def grade_distribution(
    averages: Iterable[int],
    scale: Optional[Mapping[str, float]] = None,
) -> List[DistributionBucket]:
    """
    Counts of averages per letter band, highest band first.

    The top band is open-ended ("A (90+)"); every other band runs up to
    the next threshold ("B (80-89)").
    """
    thresholds = sorted(
        ((letter, float(value)) for letter, value in (scale or DEFAULT_GRADING_SCALE).items()),
        key=lambda item: item[1],
        reverse=True,
    )
    averages = list(averages)
    buckets = []
    for idx, (letter, lower) in enumerate(thresholds):
        if idx == 0:
            count = sum(1 for avg in averages if avg >= lower)
            label = f"{letter} ({_fmt(lower)}+)"
        else:
            upper = thresholds[idx - 1][1]
            count = sum(1 for avg in averages if lower <= avg < upper)
            label = f"{letter} ({_fmt(lower)}-{_fmt(upper - 1)})"
        buckets.append(DistributionBucket(letter=letter, label=label, count=count))
    return buckets


def class_performance(
    students: Sequence[Profile],
    grades: Iterable[GradeRecord],
) -> ClassPerformance:
    """Class summary on raw scores, for lesson-plan generation."""
    if not students:
        return ClassPerformance(message="No students enrolled in this classroom")

    scores_by_student: Dict[UUID, List[int]] = {}
    for grade in grades:
        scores_by_student.setdefault(grade.student_id, []).append(grade.score)

    stats = []
    for profile in students:
        scores = scores_by_student.get(profile.id, [])
        stats.append((profile.full_name or "Unknown", round_half_up(_mean(scores))))

    averages = [avg for _, avg in stats]
    struggling = [name for name, avg in stats if avg < STRUGGLING_BELOW]
    excelling = [name for name, avg in stats if avg >= EXCELLING_FROM]
    return ClassPerformance(
        total_students=len(stats),
        average_score=round_half_up(_mean(averages)),
        struggling_students=len(struggling),
        excelling_students=len(excelling),
        struggling_names=struggling,
        excelling_names=excelling,
        grade_distribution={
            bucket.letter: bucket.count for bucket in grade_distribution(averages)
        },
    )


def _pick_scale(
    classrooms: Sequence[Classroom],
    classroom_id: Optional[UUID],
) -> Mapping[str, float]:
    if classroom_id is not None:
        for classroom in classrooms:
            if classroom.id == classroom_id and classroom.grading_scale:
                return classroom.grading_scale
        return DEFAULT_GRADING_SCALE
    for classroom in classrooms:
        if classroom.grading_scale:
            return classroom.grading_scale
    return DEFAULT_GRADING_SCALE


def teacher_analytics(
    classrooms: Sequence[Classroom],
    enrolments: Sequence[ClassroomStudent],
    profiles: Sequence[Profile],
    submissions: Sequence[Submission],
    grades: Sequence[GradeRecord],
    assignments: Sequence[Assignment],
    classroom_id: Optional[UUID] = None,
    time_range: str = "30d",
) -> TeacherAnalytics:
    """
    The teacher dashboard for one classroom or for all of them.

    Rows are expected already limited to the time range. Only enrolments
    and assignments of the targeted classrooms count; submissions and
    grades tied to other assignments are ignored.
    """
    targets = {classroom_id} if classroom_id else {c.id for c in classrooms}
    enrolments = [e for e in enrolments if e.classroom_id in targets]
    assignments = [a for a in assignments if a.classroom_id in targets]
    assignment_by_id = {a.id: a for a in assignments}

    scoped_submissions = [
        s for s in submissions if s.assignment_id is None or s.assignment_id in assignment_by_id
    ]
    scoped_grades = [
        g for g in grades if g.assignment_id is None or g.assignment_id in assignment_by_id
    ]

    def pct(grade: GradeRecord) -> float:
        assignment = assignment_by_id.get(grade.assignment_id)
        return grade.score / safe_max_score(assignment.max_score if assignment else None) * 100

    # ── Overall ───────────────────────────────────────────────────────────
    total_submissions = len({s.id for s in scoped_submissions})
    graded_submissions = len({g.submission_id for g in scoped_grades if g.submission_id})
    overall = OverallStats(
        total_students=len(profiles),
        total_submissions=total_submissions,
        graded_submissions=graded_submissions,
        pending_submissions=max(0, total_submissions - graded_submissions),
        avg_class_score=round_half_up(_mean([pct(g) for g in scoped_grades])),
    )

    # ── Classrooms ────────────────────────────────────────────────────────
    classroom_stats = []
    for classroom in classrooms:
        student_ids = {e.student_id for e in enrolments if e.classroom_id == classroom.id}
        classroom_assignments = {a.id for a in assignments if a.classroom_id == classroom.id}
        classroom_grades = [
            g for g in scoped_grades
            if g.student_id in student_ids
            and (g.assignment_id is None or g.assignment_id in classroom_assignments)
        ]
        classroom_stats.append(ClassroomStats(
            id=classroom.id,
            name=classroom.name,
            student_count=len(student_ids),
            avg_score=round_half_up(_mean([pct(g) for g in classroom_grades])),
            grading_scale=classroom.grading_scale,
        ))

    # ── Students ──────────────────────────────────────────────────────────
    students = []
    for profile in profiles:
        own = sorted(
            (g for g in scoped_grades if g.student_id == profile.id),
            key=lambda g: g.created_at,
        )
        points = [
            StudentGradePoint(
                score=round_half_up(pct(g)),
                created_at=g.created_at,
                assignment_title=(
                    assignment_by_id[g.assignment_id].title
                    if g.assignment_id in assignment_by_id
                    else "Untitled"
                ),
            )
            for g in own
        ]
        scores = [p.score for p in points]
        students.append(StudentPerformance(
            id=profile.id,
            name=profile.full_name or "Unknown",
            email=profile.email or "",
            grades=points,
            avg_score=round_half_up(_mean(scores)),
            total_submissions=len(points),
            trend=trend_of(scores),
        ))
    students.sort(key=lambda s: s.avg_score, reverse=True)

    # ── Assignments ───────────────────────────────────────────────────────
    assignment_stats = []
    for assignment in assignments:
        submission_count = len({
            s.id for s in scoped_submissions if s.assignment_id == assignment.id
        })
        enrolled = sum(1 for e in enrolments if e.classroom_id == assignment.classroom_id)
        assignment_stats.append(AssignmentStats(
            id=assignment.id,
            title=assignment.title,
            avg_score=round_half_up(_mean([
                pct(g) for g in scoped_grades if g.assignment_id == assignment.id
            ])),
            submission_count=submission_count,
            max_score=safe_max_score(assignment.max_score),
            completion_rate=min(100, round_half_up(submission_count / enrolled * 100)) if enrolled else 0,
        ))
    assignment_stats.sort(key=lambda a: a.submission_count, reverse=True)

    return TeacherAnalytics(
        time_range=time_range,
        classroom_id=classroom_id,
        overall=overall,
        classrooms=classroom_stats,
        students=students,
        assignments=assignment_stats,
        grade_distribution=grade_distribution(
            [s.avg_score for s in students], _pick_scale(classrooms, classroom_id)
        ),
    )


def _quote(value: str) -> str:
    return '"' + value.replace('"', '""') + '"'


def analytics_csv(
    students: Sequence[StudentPerformance],
    assignments: Sequence[AssignmentStats],
) -> str:
    """The dashboard's "Export report" file: students, then assignments."""
    lines = ["Student Name,Email,Average Score,Total Submissions,Trend"]
    for student in students:
        lines.append(
            f"{_quote(student.name)},{_quote(student.email)},"
            f"{student.avg_score},{student.total_submissions},{student.trend}"
        )
    lines.extend(["", "", "Assignment Analytics"])
    lines.append("Assignment Title,Average Score,Submissions,Completion Rate")
    for assignment in assignments:
        lines.append(
            f"{_quote(assignment.title)},{assignment.avg_score},"
            f"{assignment.submission_count},{assignment.completion_rate}%"
        )
    return "\n".join(lines) + "\n"


class AnalyticsService:

    async def class_performance(self, db: AsyncSession, classroom_id: UUID) -> ClassPerformance:
        try:
            enrolled = await db.execute(
                select(ClassroomStudent.student_id).where(
                    ClassroomStudent.classroom_id == classroom_id
                )
            )
            student_ids = list(dict.fromkeys(enrolled.scalars().all()))
            if not student_ids:
                return class_performance([], [])

            profiles = await db.execute(select(Profile).where(Profile.id.in_(student_ids)))
            grades = await db.execute(
                select(Grade.submission_id, Grade.student_id, Grade.score, Grade.created_at)
                .where(Grade.student_id.in_(student_ids))
            )
            return class_performance(
                list(profiles.scalars().all()),
                [GradeRecord(*row) for row in grades.all()],
            )
        except MarkwiseError:
            raise
        except Exception as e:
            logger.error("Class performance query failed: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not load class performance. Please try again.",
                context={"classroom_id": str(classroom_id)},
            )

    async def teacher_analytics(
        self,
        db: AsyncSession,
        teacher_id: UUID,
        classroom_id: Optional[UUID] = None,
        time_range: str = "30d",
    ) -> TeacherAnalytics:
        """
        Loads the teacher's rows and builds the dashboard.

        Raises:
            ValidationError: unknown time range
            NotFoundError: classroom_id is not one of the teacher's classrooms
            DatabaseError
        """
        since = since_for(time_range)
        try:
            result = await db.execute(
                select(Classroom).where(Classroom.teacher_id == teacher_id).order_by(Classroom.created_at)
            )
            classrooms = list(result.scalars().all())
            if classroom_id and classroom_id not in {c.id for c in classrooms}:
                raise NotFoundError(resource="classroom", resource_id=str(classroom_id))

            targets = [classroom_id] if classroom_id else [c.id for c in classrooms]
            if not targets:
                return TeacherAnalytics(
                    time_range=time_range, classroom_id=classroom_id, overall=OverallStats()
                )

            result = await db.execute(
                select(ClassroomStudent).where(ClassroomStudent.classroom_id.in_(targets))
            )
            enrolments = list(result.scalars().all())
            student_ids = list(dict.fromkeys(e.student_id for e in enrolments))

            profiles: List[Profile] = []
            submissions: List[Submission] = []
            grades: List[GradeRecord] = []
            assignments: List[Assignment] = []
            if student_ids:
                result = await db.execute(select(Profile).where(Profile.id.in_(student_ids)))
                profiles = list(result.scalars().all())

                query = select(Submission).where(Submission.student_id.in_(student_ids))
                if since is not None:
                    query = query.where(Submission.created_at >= since)
                result = await db.execute(query)
                submissions = list(result.scalars().all())

                query = (
                    select(
                        Grade.submission_id,
                        Grade.student_id,
                        Grade.score,
                        Grade.created_at,
                        Submission.assignment_id,
                    )
                    .outerjoin(Submission, Grade.submission_id == Submission.id)
                    .where(Grade.student_id.in_(student_ids))
                )
                if since is not None:
                    query = query.where(Grade.created_at >= since)
                result = await db.execute(query)
                grades = [GradeRecord(*row) for row in result.all()]

                result = await db.execute(
                    select(Assignment).where(Assignment.classroom_id.in_(targets))
                )
                assignments = list(result.scalars().all())
        except MarkwiseError:
            raise
        except Exception as e:
            logger.error("Teacher analytics query failed: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not load analytics. Please try again.",
                context={"teacher_id": str(teacher_id)},
            )

        logger.info(
            "Analytics for teacher %s: %d classrooms, %d students, %d grades (%s)",
            teacher_id,
            len(classrooms),
            len(profiles),
            len(grades),
            time_range,
        )
        return teacher_analytics(
            classrooms,
            enrolments,
            profiles,
            submissions,
            grades,
            assignments,
            classroom_id=classroom_id,
            time_range=time_range,
        )


analytics_service = AnalyticsService()
