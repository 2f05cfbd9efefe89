# Importing every model registers it on Base.metadata (Alembic relies on this)
from markwise.models.profile import Profile
from markwise.models.classroom import Assignment, Classroom, ClassroomStudent
from markwise.models.submission import Grade, Rubric, Submission
from markwise.models.lesson import LessonPlan, SlideDeck
from markwise.models.chat import ChatConversation, ChatMessage

__all__ = [
    "Profile",
    "Classroom",
    "ClassroomStudent",
    "Assignment",
    "Submission",
    "Rubric",
    "Grade",
    "LessonPlan",
    "SlideDeck",
    "ChatConversation",
    "ChatMessage",
]
