"""
Markwise Backend — Test Configuration (conftest.py)
====================================================

What:  Shared pytest fixtures for the entire test suite.
How:   The environment is pointed at SQLite, a throwaway storage directory
       and fake provider keys BEFORE anything from markwise is imported,
       because settings and the service singletons are built at import.

Fixtures (function-scoped):
    ├── mock_db_session: AsyncMock session; add() assigns a UUID like a flush would
    ├── mock_llm:        LLMService stand-in with AsyncMock complete/read_image
    ├── temp_storage:    Temporary directory for file operations
    ├── sample_pdf_bytes / sample_docx_bytes: real documents built in memory
    └── test_client:     HTTPX AsyncClient over the app, DB and LLM overridden
"""

import io
import os
import tempfile
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

_test_dir = tempfile.mkdtemp(prefix="markwise_test_")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_test_dir}/test.db"
os.environ["LLM_PROVIDER"] = "openai"
os.environ["OPENAI_API_KEY"] = "test-key-not-real"
os.environ["GEMINI_API_KEY"] = ""
os.environ["STORAGE_ROOT"] = os.path.join(_test_dir, "storage")
os.environ["PUBLIC_BASE_URL"] = "http://test"
os.environ["LOG_LEVEL"] = "WARNING"
# One attempt per call: retry back-off would only slow the suite down
os.environ["RETRY_MAX_ATTEMPTS"] = "1"

import fitz  # noqa: E402
import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from docx import Document  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

from markwise.services.resilience import CircuitBreaker  # noqa: E402


def _assign_id(obj):
    if getattr(obj, "id", None) is None:
        obj.id = uuid4()


@pytest.fixture
def mock_db_session():
    """
    Provides a mock async database session.

    Usage:
        mock_db_session.execute.return_value.scalar_one_or_none.return_value = row
    """
    session = AsyncMock()
    session.execute = AsyncMock(return_value=MagicMock())
    session.flush = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.close = AsyncMock()
    session.add = MagicMock(side_effect=_assign_id)
    return session


@pytest.fixture
def mock_llm():
    """A configured provider whose calls return whatever the test sets."""
    llm = MagicMock()
    llm.provider_name = "openai"
    llm.display_name = "OpenAI"
    llm.api_key_env = "OPENAI_API_KEY"
    llm.is_configured = True
    llm.circuit_breaker = CircuitBreaker()
    llm.complete = AsyncMock(return_value="")
    llm.read_image = AsyncMock(return_value="")
    llm.health_check = AsyncMock(return_value=True)
    return llm


@pytest.fixture
def temp_storage(tmp_path):
    storage_dir = tmp_path / "storage"
    storage_dir.mkdir()
    return str(storage_dir)


@pytest.fixture
def sample_pdf_bytes():
    doc = fitz.open()
    page = doc.new_page()
    page.insert_text((72, 72), "Photosynthesis converts light into chemical energy.")
    content = doc.tobytes()
    doc.close()
    return content


@pytest.fixture
def sample_docx_bytes():
    document = Document()
    document.add_paragraph("The French Revolution began in 1789.")
    document.add_paragraph("   ")
    table = document.add_table(rows=1, cols=2)
    table.rows[0].cells[0].text = "Cause"
    table.rows[0].cells[1].text = "Debt"
    buffer = io.BytesIO()
    document.save(buffer)
    return buffer.getvalue()


@pytest_asyncio.fixture
async def test_client(mock_db_session, mock_llm):
    """
    HTTP client for endpoint tests.

    The request session and the LLM provider are replaced through
    dependency_overrides; everything else (middleware, handlers, services)
    is the real application.
    """
    from markwise.database import get_db_session
    from markwise.main import app
    from markwise.services.llm import get_llm_service

    async def override_db_session():
        yield mock_db_session

    app.dependency_overrides[get_db_session] = override_db_session
    app.dependency_overrides[get_llm_service] = lambda: mock_llm

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
