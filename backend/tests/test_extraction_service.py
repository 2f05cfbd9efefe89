"""
Markwise Backend — Extraction Service Unit Tests
=================================================

What:  Tests for the per-kind readers and the submission/rubric workflows.
How:   Real PDF and DOCX documents are built in memory (conftest fixtures);
       file_service.fetch and the failure-marking session are patched.

What we test:
    ✅ PDF, DOCX, text, image and unknown files produce their notices
    ✅ Corrupt documents become notices instead of errors
    ✅ Control characters never survive
    ✅ Simulated OCR without a key; real OCR through the provider
    ✅ Oversized images raise and mark the submission failed
    ✅ Rubric variants
"""

from unittest.mock import AsyncMock, MagicMock, patch
from uuid import uuid4

import pytest

from markwise.config import settings
from markwise.exceptions import ExtractionError, NotFoundError, ValidationError
from markwise.models.submission import Rubric, Submission
from markwise.services.extraction_service import (
    FAILURE_TIPS,
    ExtractionService,
    docx_notice,
    other_notice,
    pdf_notice,
    sanitize_text,
    text_notice,
)
from markwise.services.file_service import FileKind


class TestSanitizeText:

    def test_removes_control_characters_but_keeps_whitespace(self):
        raw = "  Line\x00 one\x07\tTabbed\r\nLine two\x1b\x7f  "
        assert sanitize_text(raw) == "Line one\tTabbed\r\nLine two"

    def test_empty(self):
        assert sanitize_text(None) == ""
        assert sanitize_text("") == ""


class TestReaders:

    def test_pdf_with_text(self, sample_pdf_bytes):
        text = pdf_notice(sample_pdf_bytes)
        assert text.startswith("[PDF TEXT EXTRACTION]\n\nPages: 1\n\n")
        assert "Photosynthesis converts light" in text

    def test_pdf_without_text(self):
        import fitz

        doc = fitz.open()
        doc.new_page()
        blank = doc.tobytes()
        doc.close()

        text = pdf_notice(blank)
        assert text.startswith("[PDF Processed - No Text Found]")
        assert "1 page(s)" in text

    def test_corrupt_pdf_becomes_notice(self):
        text = pdf_notice(b"this is not a pdf")
        assert text.startswith("[PDF TEXT EXTRACTION FAILED]")
        assert "Password protected" in text

    def test_docx_paragraphs_then_tables(self, sample_docx_bytes):
        text = docx_notice(sample_docx_bytes)
        assert text == "[DOCX TEXT EXTRACTION]\n\nThe French Revolution began in 1789.\nCause | Debt"

    def test_corrupt_docx_becomes_notice(self):
        assert docx_notice(b"PK\x03\x04 broken").startswith("[DOCX EXTRACTION FAILED]")

    def test_text_file(self):
        assert text_notice("Café notes".encode("utf-8")) == "[TEXT FILE CONTENT]\n\nCafé notes"
        assert text_notice(b"   \n").startswith("[Empty File]")
        assert text_notice(b"\xff\xfe\xfa").startswith("[Text File Error]")

    def test_other_readable(self):
        assert other_notice(b"a,b,c\n1,2,3", "data.csv") == "[Text Extraction Attempt]\n\na,b,c\n1,2,3"

    def test_other_binary(self):
        text = other_notice(b"\x00\x01\xff binary", "movie.mp4")
        assert text.startswith("[Unsupported File Type]")
        assert "Your file type: MP4" in text


def _fetch_returning(content, filename):
    return patch(
        "markwise.services.extraction_service.file_service.fetch",
        new=AsyncMock(return_value=(content, filename)),
    )


def _failure_session():
    """Patches the independent session used to mark a submission failed."""
    session = AsyncMock()
    factory = MagicMock()
    factory.return_value.__aenter__.return_value = session
    factory.return_value.__aexit__.return_value = False
    return patch("markwise.services.extraction_service.async_session_factory", factory), session


class TestExtractSubmissionText:

    def setup_method(self):
        self.service = ExtractionService()
        self.submission_id = uuid4()
        self.submission = Submission(
            id=self.submission_id,
            student_id=uuid4(),
            file_url="http://test/api/files/x",
            status="processing",
        )

    def _found(self, mock_db_session):
        mock_db_session.execute.return_value.scalar_one_or_none.return_value = self.submission

    @pytest.mark.asyncio
    async def test_pdf_submission_completed(self, mock_db_session, mock_llm, sample_pdf_bytes):
        self._found(mock_db_session)

        with _fetch_returning(sample_pdf_bytes, "essay.pdf"):
            text, kind = await self.service.extract_submission_text(
                mock_db_session, mock_llm, "https://cdn.example.com/essay.pdf", self.submission_id
            )

        assert kind == FileKind.PDF
        assert "Photosynthesis" in text
        assert self.submission.extracted_text == text
        assert self.submission.status == "completed"
        mock_db_session.flush.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_text_is_sanitized(self, mock_db_session, mock_llm):
        self._found(mock_db_session)

        with _fetch_returning(b"Answer:\x00 42\x0c", "answer.txt"):
            text, kind = await self.service.extract_submission_text(
                mock_db_session, mock_llm, "https://cdn.example.com/answer.txt", self.submission_id
            )

        assert kind == FileKind.TEXT
        assert text == "[TEXT FILE CONTENT]\n\nAnswer: 42"

    @pytest.mark.asyncio
    async def test_image_ocr_through_provider(self, mock_db_session, mock_llm):
        self._found(mock_db_session)
        mock_llm.read_image.return_value = "x = 4"

        with _fetch_returning(b"\x89PNG fake", "work.png"):
            text, kind = await self.service.extract_submission_text(
                mock_db_session, mock_llm, "https://cdn.example.com/work.png", self.submission_id
            )

        assert kind == FileKind.IMAGE
        assert text == "[IMAGE OCR EXTRACTION]\n\nx = 4"
        mock_llm.read_image.assert_awaited_once_with(b"\x89PNG fake", "image/png")

    @pytest.mark.asyncio
    async def test_image_with_no_text(self, mock_db_session, mock_llm):
        self._found(mock_db_session)
        mock_llm.read_image.return_value = "   "

        with _fetch_returning(b"\xff\xd8 fake", "blank.jpg"):
            text, _ = await self.service.extract_submission_text(
                mock_db_session, mock_llm, "https://cdn.example.com/blank.jpg", self.submission_id
            )

        assert text.startswith("[No text detected in image]")

    @pytest.mark.asyncio
    async def test_simulated_ocr_without_key(self, mock_db_session, mock_llm):
        self._found(mock_db_session)
        mock_llm.is_configured = False

        with _fetch_returning(b"\xff\xd8 fake", "page.jpg"):
            text, _ = await self.service.extract_submission_text(
                mock_db_session, mock_llm, "https://cdn.example.com/page.jpg", self.submission_id
            )

        assert text.startswith("[SIMULATED OCR - Configure OPENAI_API_KEY for real OCR]")
        assert "File: page.jpg" in text
        assert "Processed: " in text
        mock_llm.read_image.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_oversized_image_marks_submission_failed(self, mock_db_session, mock_llm):
        self._found(mock_db_session)
        session_patch, failure_session = _failure_session()
        content = b"x" * (settings.max_image_size + 1)

        with _fetch_returning(content, "huge.png"), session_patch:
            with pytest.raises(ExtractionError, match="Image too large"):
                await self.service.extract_submission_text(
                    mock_db_session, mock_llm, "https://cdn.example.com/huge.png", self.submission_id
                )

        failure_session.execute.assert_awaited_once()
        failure_session.commit.assert_awaited_once()
        values = failure_session.execute.call_args[0][0].compile().params
        assert values["status"] == "failed"
        assert values["extracted_text"].startswith("[EXTRACTION FAILED]\n\nError: Image too large")
        assert values["extracted_text"].endswith(FAILURE_TIPS)
        mock_llm.read_image.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unexpected_error_wrapped_and_marked(self, mock_db_session, mock_llm):
        self._found(mock_db_session)
        session_patch, failure_session = _failure_session()

        with patch(
            "markwise.services.extraction_service.file_service.fetch",
            new=AsyncMock(side_effect=RuntimeError("disk on fire")),
        ), session_patch:
            with pytest.raises(ExtractionError, match="Text extraction failed"):
                await self.service.extract_submission_text(
                    mock_db_session, mock_llm, "https://cdn.example.com/a.pdf", self.submission_id
                )

        failure_session.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_failure_marking_error_does_not_mask_original(self, mock_db_session, mock_llm):
        self._found(mock_db_session)
        session_patch, failure_session = _failure_session()
        failure_session.commit.side_effect = RuntimeError("db down")

        with patch(
            "markwise.services.extraction_service.file_service.fetch",
            new=AsyncMock(side_effect=ExtractionError("Failed to fetch file from storage")),
        ), session_patch:
            with pytest.raises(ExtractionError, match="Failed to fetch file from storage"):
                await self.service.extract_submission_text(
                    mock_db_session, mock_llm, "https://cdn.example.com/a.pdf", self.submission_id
                )

    @pytest.mark.asyncio
    async def test_missing_arguments(self, mock_db_session, mock_llm):
        with pytest.raises(ValidationError, match="Missing fileUrl or submissionId"):
            await self.service.extract_submission_text(mock_db_session, mock_llm, None, uuid4())
        with pytest.raises(ValidationError, match="Missing fileUrl or submissionId"):
            await self.service.extract_submission_text(mock_db_session, mock_llm, "u", None)

    @pytest.mark.asyncio
    async def test_unknown_submission(self, mock_db_session, mock_llm):
        mock_db_session.execute.return_value.scalar_one_or_none.return_value = None

        with pytest.raises(NotFoundError):
            await self.service.extract_submission_text(
                mock_db_session, mock_llm, "https://cdn.example.com/a.pdf", uuid4()
            )


class TestExtractRubricText:

    def setup_method(self):
        self.service = ExtractionService()
        self.rubric_id = uuid4()
        self.rubric = Rubric(
            id=self.rubric_id, teacher_id=uuid4(), file_url="u", status="processing"
        )

    def _found(self, mock_db_session):
        mock_db_session.execute.return_value.scalar_one_or_none.return_value = self.rubric

    @pytest.mark.asyncio
    async def test_pdf_rubric(self, mock_db_session, mock_llm, sample_pdf_bytes):
        self._found(mock_db_session)

        with _fetch_returning(sample_pdf_bytes, "rubric.pdf"):
            text, kind = await self.service.extract_rubric_text(
                mock_db_session, mock_llm, "https://cdn.example.com/rubric.pdf", self.rubric_id
            )

        assert kind == FileKind.PDF
        assert text.startswith("[RUBRIC - 1 page(s)]\n\n")
        assert self.rubric.extracted_text == text
        assert self.rubric.status == "completed"

    @pytest.mark.asyncio
    async def test_image_rubric_returns_bare_ocr(self, mock_db_session, mock_llm):
        self._found(mock_db_session)
        mock_llm.read_image.return_value = "Thesis: 10 pts"

        with _fetch_returning(b"img", "rubric.jpeg"):
            text, _ = await self.service.extract_rubric_text(
                mock_db_session, mock_llm, "https://cdn.example.com/rubric.jpeg", self.rubric_id
            )

        assert text == "Thesis: 10 pts"

    @pytest.mark.asyncio
    async def test_image_rubric_simulated(self, mock_db_session, mock_llm):
        self._found(mock_db_session)
        mock_llm.is_configured = False

        with _fetch_returning(b"img", "rubric.png"):
            text, _ = await self.service.extract_rubric_text(
                mock_db_session, mock_llm, "https://cdn.example.com/rubric.png", self.rubric_id
            )

        assert text == "[SIMULATED OCR]\n\nFile: rubric.png\n\nConfigure OPENAI_API_KEY for real OCR"

    @pytest.mark.asyncio
    async def test_unsupported_rubric_type(self, mock_db_session, mock_llm, sample_docx_bytes):
        self._found(mock_db_session)

        with _fetch_returning(sample_docx_bytes, "rubric.docx"):
            text, kind = await self.service.extract_rubric_text(
                mock_db_session, mock_llm, "https://cdn.example.com/rubric.docx", self.rubric_id
            )

        assert kind == FileKind.DOCX
        assert text == "[Unsupported file type: docx]"
        assert self.rubric.status == "completed"

    @pytest.mark.asyncio
    async def test_missing_arguments(self, mock_db_session, mock_llm):
        with pytest.raises(ValidationError, match="Missing fileUrl or rubricId"):
            await self.service.extract_rubric_text(mock_db_session, mock_llm, "u", None)
