"""
Markwise Backend — Tutor Chat Service
======================================

What:  StudyBuddy, a tutor that answers a student's questions with their
       own grades, strengths and weaknesses in view.

Orchestration Flow (POST /api/chat_with_ai):
    1. Build the student context: profile plus the last five grades,
       joined through the submission to the assignment
    2. Render the tutor system prompt around that context
    3. One LLM call for the reply
    4. Create or touch the conversation, store both turns

The context snapshot is returned to the client and stored on the
assistant message, so a reply can always be traced to what the tutor knew.
"""

import logging
from typing import Any, Iterable, List, Optional, Sequence, Tuple
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from markwise.exceptions import DatabaseError, MarkwiseError, NotFoundError, ValidationError
from markwise.models.chat import ChatConversation, ChatMessage
from markwise.models.classroom import Assignment
from markwise.models.columns import utcnow
from markwise.models.profile import Profile
from markwise.models.submission import Grade, Submission
from markwise.schemas.chat import (
    ChatRequest,
    ChatResponse,
    RecentAssignment,
    StudentContext,
    SubjectPerformance,
)
from markwise.services.grading import percentage, round_half_up
from markwise.services.llm_base import LLMService
from markwise.services.prompts import tutor_system_prompt

logger = logging.getLogger(__name__)

RECENT_GRADES_LIMIT = 5
MAX_INSIGHTS = 5
CONTEXT_ASSIGNMENTS = 3
TITLE_LENGTH = 50


def _unique(items: Iterable[Any], limit: int) -> List[str]:
    seen: List[str] = []
    for item in items:
        text = str(item)
        if text not in seen:
            seen.append(text)
        if len(seen) == limit:
            break
    return seen


def conversation_title(message: str) -> str:
    if len(message) > TITLE_LENGTH:
        return message[:TITLE_LENGTH] + "..."
    return message


def build_student_context(
    profile: Optional[Profile],
    graded: Sequence[Tuple[Grade, Assignment]],
) -> StudentContext:
    """
    Folds a profile and (grade, assignment) pairs, newest first, into the
    context the tutor sees.

    Strengths and weaknesses are de-duplicated in order and capped at five.
    Averages are rounded percentages; 0 when there are no grades.
    """
    strengths: List[str] = []
    weaknesses: List[str] = []
    recent: List[RecentAssignment] = []

    for grade, assignment in graded:
        insights = grade.insights or {}
        strengths.extend(insights.get("strengths") or [])
        weaknesses.extend(insights.get("weaknesses") or [])
        recent.append(RecentAssignment(
            title=assignment.title,
            subject=assignment.subject,
            score=grade.score,
            max_score=assignment.max_score,
            percentage=percentage(grade.score, assignment.max_score),
            feedback=grade.feedback,
        ))

    subjects = {}
    for item in recent:
        perf = subjects.setdefault(item.subject or "General", SubjectPerformance())
        perf.total += item.percentage
        perf.count += 1
    for perf in subjects.values():
        perf.avg = round_half_up(perf.total / perf.count)

    overall = round_half_up(sum(item.percentage for item in recent) / len(recent)) if recent else 0

    return StudentContext(
        student_name=(profile.full_name if profile and profile.full_name else "Student"),
        grade_level=(profile.grade_level if profile and profile.grade_level else "Not specified"),
        overall_average=overall,
        strengths=_unique(strengths, MAX_INSIGHTS),
        weaknesses=_unique(weaknesses, MAX_INSIGHTS),
        recent_assignments=recent[:CONTEXT_ASSIGNMENTS],
        subject_performance=subjects,
    )


class ChatService:

    async def load_student_context(self, db: AsyncSession, student_id: UUID) -> StudentContext:
        profile_result = await db.execute(select(Profile).where(Profile.id == student_id))
        profile = profile_result.scalar_one_or_none()

        grades_result = await db.execute(
            select(Grade, Assignment)
            .join(Submission, Grade.submission_id == Submission.id)
            .join(Assignment, Submission.assignment_id == Assignment.id)
            .where(Grade.student_id == student_id)
            .order_by(Grade.created_at.desc())
            .limit(RECENT_GRADES_LIMIT)
        )
        graded = [(row[0], row[1]) for row in grades_result.all()]
        return build_student_context(profile, graded)

    async def _conversation(
        self,
        db: AsyncSession,
        request: ChatRequest,
    ) -> ChatConversation:
        if request.conversation_id is None:
            conversation = ChatConversation(
                student_id=request.student_id,
                title=conversation_title(request.message),
                last_message_at=utcnow(),
            )
            db.add(conversation)
            await db.flush()
            logger.info("Started conversation %s", conversation.id)
            return conversation

        result = await db.execute(
            select(ChatConversation).where(ChatConversation.id == request.conversation_id)
        )
        conversation = result.scalar_one_or_none()
        if conversation is None:
            raise NotFoundError(resource="conversation", resource_id=str(request.conversation_id))
        conversation.last_message_at = utcnow()
        return conversation

    async def chat_with_ai(
        self,
        db: AsyncSession,
        llm: LLMService,
        request: ChatRequest,
    ) -> ChatResponse:
        """
        Answers one student message and records the exchange.

        Raises:
            ValidationError: studentId or message missing
            NotFoundError: conversationId given but unknown
            LLMServiceError, CircuitBreakerOpenError, ConfigurationError
            DatabaseError
        """
        if not request.student_id or not request.message:
            raise ValidationError(message="Missing required fields: studentId and message")

        context = await self.load_student_context(db, request.student_id)
        logger.info(
            "Tutor context for %s: %d recent assignments, average %d%%",
            request.student_id,
            len(context.recent_assignments),
            context.overall_average,
        )

        reply = await llm.complete(
            [
                {"role": "system", "content": tutor_system_prompt(context)},
                {"role": "user", "content": request.message},
            ],
            temperature=0.7,
            max_tokens=1500,
        )

        try:
            conversation = await self._conversation(db, request)
            db.add(ChatMessage(
                conversation_id=conversation.id,
                role="user",
                content=request.message,
            ))
            db.add(ChatMessage(
                conversation_id=conversation.id,
                role="assistant",
                content=reply,
                context_used=context.model_dump(mode="json", by_alias=True),
            ))
            await db.flush()
        except MarkwiseError:
            raise
        except Exception as e:
            logger.error("Failed to store chat messages: %s", str(e), exc_info=True)
            raise DatabaseError(
                message="Could not save the conversation. Please try again.",
                context={"student_id": str(request.student_id)},
            )

        return ChatResponse(
            response=reply,
            conversation_id=conversation.id,
            context_used=context,
        )


chat_service = ChatService()
