"""
Markwise Backend — Application Package
=======================================

What: AI-assisted grading, text extraction, lesson planning and tutoring API.
Who:  Imported by uvicorn (`markwise.main:app`), Alembic and pytest.

Layers:

    ┌─────────────────────────────────────┐
    │           Routes (API Layer)        │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │   Services (grading, extraction,    │  ← Workflows, AI calls
    │   lessons, tutor chat, analytics)   │
    ├─────────────────────────────────────┤
    │       Models & Schemas (Data)       │  ← SQLAlchemy ORM + Pydantic
    ├─────────────────────────────────────┤
    │        Database (Persistence)       │  ← Async SQLAlchemy sessions
    └─────────────────────────────────────┘
"""

__version__ = "1.0.0"
