"""
Markwise Backend — Text Extraction Service
===========================================

What:  Turns an uploaded submission or rubric file into plain text and
       stores it on the matching row.
How:   The file is fetched by URL, classified by extension and handed to
       the matching reader:

           pdf    → PyMuPDF
           docx   → python-docx (paragraphs, then table cells)
           image  → OCR through the active LLM provider's vision input
           text   → UTF-8 decode
           other  → best-effort UTF-8 decode

Error Handling:
    A file that parses badly (corrupt PDF, damaged DOCX, odd encoding) is
    not an error: the reader returns a bracketed notice explaining what
    happened, and that notice becomes the extracted text so teachers see
    it next to the submission.

    Failures that stop extraction altogether (download failure, oversized
    image, OCR provider down) raise. For submissions the row is then marked
    'failed' with a troubleshooting text, written in its own session
    because the request session is rolled back when the error propagates.
"""

import asyncio
import io
import logging
from datetime import datetime, timezone
from typing import Optional, Tuple
from uuid import UUID

import fitz
from docx import Document
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from markwise.config import settings
from markwise.database import async_session_factory
from markwise.exceptions import ExtractionError, MarkwiseError, NotFoundError, ValidationError
from markwise.models.submission import Rubric, Submission
from markwise.services.file_service import (
    FileKind,
    detect_kind,
    file_extension,
    file_service,
    image_mime_type,
)
from markwise.services.grading import round_half_up
from markwise.services.llm_base import LLMService

logger = logging.getLogger(__name__)

# Control characters other than \t, \n and \r
_CONTROL_CHARS = {c for c in range(0x20) if c not in (0x09, 0x0A, 0x0D)} | {0x7F}
_CONTROL_TABLE = dict.fromkeys(_CONTROL_CHARS)

FAILURE_TIPS = (
    "Troubleshooting tips:\n"
    "- Ensure file is not corrupted\n"
    "- Try converting DOCX to PDF\n"
    "- Compress large images (max 10MB)\n"
    "- Use supported formats: PDF, DOCX, JPG, PNG, TXT\n\n"
    "Contact your teacher if the problem persists."
)


def sanitize_text(text: Optional[str]) -> str:
    """Drops NUL and control characters (keeping tabs and newlines), then trims."""
    if not text:
        return ""
    return text.translate(_CONTROL_TABLE).strip()


# ── Readers ───────────────────────────────────────────────────────────────
# Synchronous parsers run in a worker thread so a large document does not
# block the event loop.

def read_pdf(content: bytes) -> Tuple[str, int]:
    """Returns (text, page_count)."""
    with fitz.open(stream=content, filetype="pdf") as doc:
        page_count = doc.page_count
        text = "\n".join(page.get_text() for page in doc)
    return text, page_count


def read_docx(content: bytes) -> str:
    document = Document(io.BytesIO(content))
    lines = [paragraph.text for paragraph in document.paragraphs if paragraph.text.strip()]
    for table in document.tables:
        for row in table.rows:
            cells = [cell.text.strip() for cell in row.cells if cell.text.strip()]
            if cells:
                lines.append(" | ".join(cells))
    return "\n".join(lines)


def pdf_notice(content: bytes) -> str:
    try:
        text, pages = read_pdf(content)
    except Exception as e:
        logger.warning("PDF parsing error: %s", str(e))
        return (
            f"[PDF TEXT EXTRACTION FAILED]\n\nError: {e}\n\n"
            "This PDF may be:\n- Password protected\n- Corrupted\n"
            "- Using an unsupported format\n\n"
            "Please try:\n1. Converting to images (JPG/PNG) for OCR\n"
            "2. Saving as a different PDF version\n"
            "3. Ensuring the file is not password protected"
        )
    if text.strip():
        return f"[PDF TEXT EXTRACTION]\n\nPages: {pages}\n\n{text}"
    return (
        f"[PDF Processed - No Text Found]\n\nThis PDF has {pages} page(s) but no "
        "extractable text was found.\n\nPossible reasons:\n"
        "- The PDF contains only images/scans\n- The PDF is encrypted or protected\n"
        "- The text is embedded as images\n\n"
        "Recommendation: Convert PDF pages to images (JPG/PNG) and upload for OCR processing."
    )


def docx_notice(content: bytes) -> str:
    try:
        text = read_docx(content)
    except Exception as e:
        logger.warning("DOCX parsing error: %s", str(e))
        return (
            f"[DOCX EXTRACTION FAILED]\n\nError: {e}\n\n"
            "This DOCX file may be:\n- Corrupted or incomplete\n- Password protected\n"
            "- Created with an incompatible version\n\n"
            "Please try:\n1. Opening and re-saving the file in Microsoft Word\n"
            "2. Converting to PDF format\n3. Copying text into a plain text (.txt) file"
        )
    if text.strip():
        return f"[DOCX TEXT EXTRACTION]\n\n{text}"
    return (
        "[DOCX Processed - No Text Found]\n\nThe document appears to be empty or "
        "contains only formatting/images.\n\n"
        "Please verify the document contains actual text content."
    )


def text_notice(content: bytes) -> str:
    try:
        text = content.decode("utf-8")
    except UnicodeDecodeError:
        return (
            "[Text File Error]\n\nCould not decode text file. "
            "It may use an unsupported encoding."
        )
    if not text.strip():
        return "[Empty File]\n\nThe text file appears to be empty."
    return f"[TEXT FILE CONTENT]\n\n{text}"


def other_notice(content: bytes, filename: str) -> str:
    text = content.decode("utf-8", errors="replace")
    if "\ufffd" in text or "\x00" in text or not text.strip():
        ext = file_extension(filename).upper() or "Unknown"
        return (
            f"[Unsupported File Type]\n\nFile: {filename}\nType: {ext}\n\n"
            "This file type is not supported for text extraction.\n\n"
            "✅ Supported formats:\n- PDF documents (.pdf)\n- Word documents (.docx, .doc)\n"
            "- Images (.jpg, .jpeg, .png, .gif, .bmp, .webp) - requires OCR\n"
            "- Plain text (.txt, .md)\n\n"
            f"⚠️ Your file type: {ext}\n\n"
            "Please convert your file to one of the supported formats and try again."
        )
    return f"[Text Extraction Attempt]\n\n{text}"


class ExtractionService:
    """
    Stateless extraction workflows for submissions and rubrics.

    The LLM provider is passed per call so routes control which one is
    used and tests can hand in a mock.
    """

    async def _ocr(self, llm: LLMService, content: bytes, filename: str) -> Optional[str]:
        """OCR text of an image, or None when no provider key is configured."""
        if not llm.is_configured:
            logger.warning(
                "%s not set; returning simulated OCR for %s", llm.api_key_env, filename
            )
            return None
        return await llm.read_image(content, image_mime_type(filename))

    async def _image_notice(self, llm: LLMService, content: bytes, filename: str) -> str:
        if len(content) > settings.max_image_size:
            size_mb = round_half_up(len(content) / 1024 / 1024)
            max_mb = round_half_up(settings.max_image_size / 1024 / 1024)
            raise ExtractionError(
                message=(
                    f"Image too large ({size_mb}MB). Maximum size is {max_mb}MB. "
                    "Please compress or resize the image."
                ),
                context={"size": len(content), "filename": filename},
            )

        text = await self._ocr(llm, content, filename)
        if text is None:
            return (
                f"[SIMULATED OCR - Configure {llm.api_key_env} for real OCR]\n\n"
                f"File: {filename}\n"
                f"Processed: {datetime.now(timezone.utc).isoformat()}\n\n"
                "This is simulated text extraction. To enable real OCR:\n"
                f"1. Set {llm.api_key_env} for the {llm.display_name} provider\n"
                "2. Files will be processed with real OCR on the next upload\n\n"
                f"Sample content placeholder for: {filename}"
            )
        if not text.strip():
            return (
                "[No text detected in image]\n\nThe image may not contain readable text, "
                "or the text may be too small/blurry to detect."
            )
        return f"[IMAGE OCR EXTRACTION]\n\n{text}"

    async def extract_file_text(self, llm: LLMService, file_url: str) -> Tuple[str, FileKind]:
        """Fetches and reads a file; returns (sanitized_text, kind)."""
        content, filename = await file_service.fetch(file_url)
        kind = detect_kind(filename)
        logger.info("Processing file: %s, kind=%s, %d bytes", filename, kind.value, len(content))

        if kind == FileKind.PDF:
            text = await asyncio.to_thread(pdf_notice, content)
        elif kind == FileKind.DOCX:
            text = await asyncio.to_thread(docx_notice, content)
        elif kind == FileKind.IMAGE:
            text = await self._image_notice(llm, content, filename)
        elif kind == FileKind.TEXT:
            text = text_notice(content)
        else:
            text = other_notice(content, filename)
        return sanitize_text(text), kind

    async def extract_submission_text(
        self,
        db: AsyncSession,
        llm: LLMService,
        file_url: Optional[str],
        submission_id: Optional[UUID],
    ) -> Tuple[str, FileKind]:
        """
        Extracts a submission's text and marks it completed.

        Raises:
            ValidationError: fileUrl or submissionId missing
            NotFoundError: unknown submission
            ExtractionError, LLMServiceError, ...: the submission is marked
                'failed' before the error propagates
        """
        if not file_url or not submission_id:
            raise ValidationError(message="Missing fileUrl or submissionId")

        result = await db.execute(select(Submission).where(Submission.id == submission_id))
        submission = result.scalar_one_or_none()
        if submission is None:
            raise NotFoundError(resource="submission", resource_id=str(submission_id))

        try:
            text, kind = await self.extract_file_text(llm, file_url)
            submission.extracted_text = text
            submission.status = "completed"
            await db.flush()
        except Exception as e:
            await self._mark_failed(submission_id, e)
            if isinstance(e, MarkwiseError):
                raise
            logger.error("Unexpected error extracting %s: %s", submission_id, str(e), exc_info=True)
            raise ExtractionError(
                message="Text extraction failed. Please try again.",
                context={"error_type": type(e).__name__},
            )

        logger.info("Submission %s extracted: %d chars (%s)", submission_id, len(text), kind.value)
        return text, kind

    async def _mark_failed(self, submission_id: UUID, error: Exception) -> None:
        message = error.message if isinstance(error, MarkwiseError) else str(error)
        try:
            async with async_session_factory() as session:
                await session.execute(
                    update(Submission)
                    .where(Submission.id == submission_id)
                    .values(
                        status="failed",
                        extracted_text=f"[EXTRACTION FAILED]\n\nError: {message}\n\n{FAILURE_TIPS}",
                    )
                )
                await session.commit()
            logger.info("Marked submission %s as failed", submission_id)
        except Exception as update_error:
            logger.error(
                "Failed to update submission %s status: %s", submission_id, str(update_error)
            )

    async def extract_rubric_text(
        self,
        db: AsyncSession,
        llm: LLMService,
        file_url: Optional[str],
        rubric_id: Optional[UUID],
    ) -> Tuple[str, FileKind]:
        """
        Extracts a rubric's text and marks it completed.

        Rubrics accept PDFs and images only; other files are stored as an
        "[Unsupported file type: ...]" notice.
        """
        if not file_url or not rubric_id:
            raise ValidationError(message="Missing fileUrl or rubricId")

        result = await db.execute(select(Rubric).where(Rubric.id == rubric_id))
        rubric = result.scalar_one_or_none()
        if rubric is None:
            raise NotFoundError(resource="rubric", resource_id=str(rubric_id))

        content, filename = await file_service.fetch(file_url)
        kind = detect_kind(filename)
        logger.info("Processing rubric: %s, kind=%s", filename, kind.value)

        if kind == FileKind.PDF:
            text = await asyncio.to_thread(self._rubric_pdf, content)
        elif kind == FileKind.IMAGE:
            ocr_text = await self._ocr(llm, content, filename)
            if ocr_text is None:
                text = (
                    f"[SIMULATED OCR]\n\nFile: {filename}\n\n"
                    f"Configure {llm.api_key_env} for real OCR"
                )
            else:
                text = ocr_text if ocr_text.strip() else "[No text detected in image]"
        else:
            text = f"[Unsupported file type: {file_extension(filename)}]"

        text = sanitize_text(text)
        rubric.extracted_text = text
        rubric.status = "completed"
        await db.flush()
        logger.info("Rubric %s extracted: %d chars", rubric_id, len(text))
        return text, kind

    @staticmethod
    def _rubric_pdf(content: bytes) -> str:
        try:
            text, pages = read_pdf(content)
        except Exception as e:
            logger.warning("Rubric PDF parsing error: %s", str(e))
            return f"[PDF TEXT EXTRACTION FAILED]\n\nError: {e}"
        if text.strip():
            return f"[RUBRIC - {pages} page(s)]\n\n{text}"
        return (
            f"[PDF Processed - No Text Found]\n\nThis PDF has {pages} page(s) "
            "but no extractable text."
        )


extraction_service = ExtractionService()
