"""Initial schema

Revision ID: 001
Revises: None
Create Date: 2025-03-01 00:00:00.000000+00:00

What:  Creates profiles, classrooms and enrolments, assignments,
       submissions, rubrics, grades, lesson plans, slide decks and the
       tutor chat tables.

Rollback: downgrade() drops every table (destructive).
"""

from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _id() -> sa.Column:
    return sa.Column(
        "id",
        postgresql.UUID(as_uuid=True),
        server_default=sa.text("gen_random_uuid()"),
        nullable=False,
    )


def _created_at(name: str = "created_at") -> sa.Column:
    return sa.Column(
        name,
        sa.TIMESTAMP(timezone=True),
        server_default=sa.text("CURRENT_TIMESTAMP"),
        nullable=False,
    )


def _fk(name: str, target: str, nullable: bool = False, ondelete: str = "CASCADE") -> sa.Column:
    return sa.Column(
        name,
        postgresql.UUID(as_uuid=True),
        sa.ForeignKey(target, ondelete=ondelete),
        nullable=nullable,
    )


def upgrade() -> None:
    op.create_table(
        "profiles",
        _id(),
        sa.Column("full_name", sa.String(255), nullable=True),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("role", sa.String(20), nullable=False, server_default=sa.text("'student'")),
        sa.Column("grade_level", sa.String(50), nullable=True),
        _created_at(),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "classrooms",
        _id(),
        _fk("teacher_id", "profiles.id"),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("invite_code", sa.String(20), nullable=True, unique=True),
        # Letter → minimum percentage; NULL means the default scale
        sa.Column("grading_scale", postgresql.JSONB(), nullable=True),
        _created_at(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_classrooms_teacher_id", "classrooms", ["teacher_id"])

    op.create_table(
        "classroom_students",
        _id(),
        _fk("classroom_id", "classrooms.id"),
        _fk("student_id", "profiles.id"),
        _created_at("joined_at"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_classroom_students_classroom_id", "classroom_students", ["classroom_id"])
    op.create_index("idx_classroom_students_student_id", "classroom_students", ["student_id"])

    op.create_table(
        "assignments",
        _id(),
        _fk("classroom_id", "classrooms.id", nullable=True),
        _fk("teacher_id", "profiles.id"),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("subject", sa.String(100), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("max_score", sa.Integer(), nullable=False, server_default=sa.text("100")),
        sa.Column("due_date", sa.TIMESTAMP(timezone=True), nullable=True),
        _created_at(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_assignments_classroom_id", "assignments", ["classroom_id"])

    op.create_table(
        "submissions",
        _id(),
        _fk("assignment_id", "assignments.id", nullable=True, ondelete="SET NULL"),
        _fk("student_id", "profiles.id"),
        sa.Column("file_url", sa.Text(), nullable=False),
        sa.Column("file_name", sa.String(255), nullable=True),
        sa.Column("extracted_text", sa.Text(), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'processing'")),
        _created_at(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_submissions_student_id", "submissions", ["student_id"])
    op.create_index("idx_submissions_assignment_id", "submissions", ["assignment_id"])

    op.create_table(
        "rubrics",
        _id(),
        _fk("teacher_id", "profiles.id"),
        sa.Column("file_url", sa.Text(), nullable=False),
        sa.Column("extracted_text", sa.Text(), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'processing'")),
        _created_at(),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "grades",
        _id(),
        _fk("submission_id", "submissions.id"),
        _fk("teacher_id", "profiles.id"),
        _fk("student_id", "profiles.id"),
        # Points out of the assignment's max_score, never a percentage
        sa.Column("score", sa.Integer(), nullable=False),
        sa.Column("feedback", sa.Text(), nullable=False, server_default=sa.text("''")),
        sa.Column("rubric", sa.Text(), nullable=True),
        sa.Column("insights", postgresql.JSONB(), nullable=True),
        _created_at(),
        sa.PrimaryKeyConstraint("id"),
    )
    # The tutor reads a student's latest grades first
    op.create_index(
        "idx_grades_student_id_created_at",
        "grades",
        ["student_id", sa.text("created_at DESC")],
    )
    op.create_index("idx_grades_submission_id", "grades", ["submission_id"])

    op.create_table(
        "lesson_plans",
        _id(),
        _fk("teacher_id", "profiles.id"),
        _fk("classroom_id", "classrooms.id", nullable=True, ondelete="SET NULL"),
        sa.Column("subject", sa.String(100), nullable=False),
        sa.Column("topic", sa.String(255), nullable=False),
        sa.Column("title", sa.String(255), nullable=True),
        sa.Column("grade_level", sa.String(50), nullable=True),
        sa.Column("plan_content", sa.Text(), nullable=False),
        sa.Column("performance_summary", postgresql.JSONB(), nullable=True),
        _created_at(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_lesson_plans_teacher_id", "lesson_plans", ["teacher_id"])

    op.create_table(
        "slide_decks",
        _id(),
        _fk("lesson_plan_id", "lesson_plans.id"),
        _fk("teacher_id", "profiles.id", nullable=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("slides", postgresql.JSONB(), nullable=False),
        sa.Column(
            "theme", sa.String(50), nullable=False, server_default=sa.text("'professional'")
        ),
        _created_at(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_slide_decks_lesson_plan_id", "slide_decks", ["lesson_plan_id"])

    op.create_table(
        "chat_conversations",
        _id(),
        _fk("student_id", "profiles.id"),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column(
            "last_message_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        _created_at(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "idx_chat_conversations_student_id",
        "chat_conversations",
        ["student_id", "last_message_at"],
    )

    op.create_table(
        "chat_messages",
        _id(),
        _fk("conversation_id", "chat_conversations.id"),
        sa.Column("role", sa.String(20), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("context_used", postgresql.JSONB(), nullable=True),
        _created_at(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_chat_messages_conversation_id", "chat_messages", ["conversation_id"])


def downgrade() -> None:
    for table in (
        "chat_messages",
        "chat_conversations",
        "slide_decks",
        "lesson_plans",
        "grades",
        "rubrics",
        "submissions",
        "assignments",
        "classroom_students",
        "classrooms",
        "profiles",
    ):
        op.drop_table(table)
