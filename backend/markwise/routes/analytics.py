"""
Analytics routes: the lesson planner's class summary and the teacher
dashboard, as JSON or as the CSV report.
"""

import logging
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from markwise.database import get_db_session
from markwise.schemas.analytics import ClassPerformance, TeacherAnalytics
from markwise.schemas.common import ErrorResponse
from markwise.services.analytics_service import analytics_csv, analytics_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/analytics", tags=["Analytics"])

TIME_RANGE_QUERY = Query(default="30d", description="7d, 30d, 90d or all")


@router.get(
    "/classrooms/{classroom_id}/performance",
    response_model=ClassPerformance,
    response_model_exclude_none=True,
    summary="Class performance summary for lesson planning",
)
async def classroom_performance(
    classroom_id: UUID,
    db: AsyncSession = Depends(get_db_session),
) -> ClassPerformance:
    return await analytics_service.class_performance(db, classroom_id)


@router.get(
    "/teachers/{teacher_id}",
    response_model=TeacherAnalytics,
    responses={
        400: {"description": "Invalid time range", "model": ErrorResponse},
        404: {"description": "Classroom not found", "model": ErrorResponse},
    },
    summary="Teacher analytics dashboard",
)
async def teacher_dashboard(
    teacher_id: UUID,
    classroom_id: Optional[UUID] = Query(default=None, description="Omit for all classrooms"),
    time_range: str = TIME_RANGE_QUERY,
    db: AsyncSession = Depends(get_db_session),
) -> TeacherAnalytics:
    return await analytics_service.teacher_analytics(db, teacher_id, classroom_id, time_range)


@router.get(
    "/teachers/{teacher_id}/export.csv",
    response_class=Response,
    responses={200: {"content": {"text/csv": {}}}},
    summary="Teacher analytics as a CSV report",
)
async def teacher_dashboard_csv(
    teacher_id: UUID,
    classroom_id: Optional[UUID] = Query(default=None),
    time_range: str = TIME_RANGE_QUERY,
    db: AsyncSession = Depends(get_db_session),
) -> Response:
    analytics = await analytics_service.teacher_analytics(
        db, teacher_id, classroom_id, time_range
    )
    filename = f"analytics-report-{datetime.now(timezone.utc).date().isoformat()}.csv"
    return Response(
        content=analytics_csv(analytics.students, analytics.assignments),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
