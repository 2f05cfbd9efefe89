"""
Profile model: one row per teacher or student account.

Authentication lives outside this service; rows are keyed by the identity
provider's user id.
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from markwise.database import Base
from markwise.models.columns import created_at_column, uuid_pk


class Profile(Base):
    __tablename__ = "profiles"

    id: Mapped[uuid.UUID] = uuid_pk()
    full_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    # 'teacher' or 'student'
    role: Mapped[str] = mapped_column(String(20), nullable=False, default="student")
    grade_level: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    created_at: Mapped[datetime] = created_at_column()

    def __repr__(self) -> str:
        return f"<Profile(id={self.id}, role='{self.role}')>"
