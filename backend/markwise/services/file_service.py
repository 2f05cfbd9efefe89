"""
Markwise Backend — File Storage Service
========================================

What:  Stores uploaded submissions and rubrics, serves them back, and
       fetches files by URL for text extraction.
Why:   Centralizes every file system and download operation behind one
       set of security checks.
Who:   Upload route (store), extraction service (fetch), file route (serve).

File kinds:
    Classification is by the extension of the URL's last path segment,
    the same rule for uploads and for extraction:

        pdf     .pdf
        docx    .docx .doc
        image   .jpg .jpeg .png .gif .bmp .webp
        text    .txt .text .md
        other   anything else

Security Model:
    1. Extension check:  uploads of kind "other" are rejected
    2. Size check:       empty files and files above MAX_FILE_SIZE rejected
    3. UUID filename:    no user input reaches the storage path
    4. Traversal check:  every read resolves the path and requires it to
                         stay under the storage root

Local URLs:
    Stored files are addressed as {PUBLIC_BASE_URL}/api/files/<relative>.
    fetch() recognises that prefix and reads straight from disk instead of
    calling back into this server over HTTP.
"""

import logging
import os
import uuid
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Optional, Tuple
from urllib.parse import unquote, urlparse

import aiofiles
import httpx

from markwise.config import settings
from markwise.exceptions import ExtractionError, FileStorageError, ValidationError

logger = logging.getLogger(__name__)

FILES_ROUTE = "/api/files/"


class FileKind(str, Enum):
    PDF = "pdf"
    DOCX = "docx"
    IMAGE = "image"
    TEXT = "text"
    OTHER = "other"


EXTENSION_KINDS = {
    "pdf": FileKind.PDF,
    "docx": FileKind.DOCX,
    "doc": FileKind.DOCX,
    "jpg": FileKind.IMAGE,
    "jpeg": FileKind.IMAGE,
    "png": FileKind.IMAGE,
    "gif": FileKind.IMAGE,
    "bmp": FileKind.IMAGE,
    "webp": FileKind.IMAGE,
    "txt": FileKind.TEXT,
    "text": FileKind.TEXT,
    "md": FileKind.TEXT,
}

IMAGE_MIME_TYPES = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "bmp": "image/bmp",
    "webp": "image/webp",
}


def file_name_from_url(url: str) -> str:
    """Last path segment of a URL, percent-decoded; '' when there is none."""
    path = urlparse(url).path if "://" in url else url
    return unquote(path.rstrip("/").split("/")[-1]) if path else ""


def file_extension(filename: str) -> str:
    """Lower-cased text after the last dot, without the dot."""
    if "." not in filename:
        return ""
    return filename.rsplit(".", 1)[-1].lower()


def detect_kind(filename: str) -> FileKind:
    return EXTENSION_KINDS.get(file_extension(filename), FileKind.OTHER)


def image_mime_type(filename: str) -> str:
    return IMAGE_MIME_TYPES.get(file_extension(filename), "application/octet-stream")


class FileService:
    """
    Manages the storage lifecycle of uploaded files.

    Directory Structure:
        storage/
        └── 2025/
            └── 03/
                └── 14/
                    ├── 0b6f...e1.pdf
                    └── 9a2c...47.png
    """

    def __init__(
        self,
        storage_root: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            storage_root: Override the default storage path (used in tests).
            transport: httpx transport for remote fetches (tests pass a MockTransport).
        """
        self.transport = transport
        self.storage_root = Path(storage_root or settings.storage_root).resolve()
        self.storage_root.mkdir(parents=True, exist_ok=True)
        logger.info("FileService initialized with storage_root=%s", self.storage_root)

    # ── Upload ────────────────────────────────────────────────────────────

    def validate_upload(self, filename: str, size: int) -> str:
        """
        Checks an upload before it is written.

        Returns:
            The normalized extension, with its leading dot.

        Raises:
            ValidationError for unsupported types, empty files and files
            above MAX_FILE_SIZE.
        """
        ext = file_extension(filename)
        if detect_kind(filename) == FileKind.OTHER:
            raise ValidationError(
                message=(
                    f"File type '.{ext}' is not supported. "
                    f"Allowed types: {', '.join('.' + e for e in sorted(EXTENSION_KINDS))}"
                ),
                field="file",
                context={"extension": ext},
            )
        if size == 0:
            raise ValidationError(message="Uploaded file is empty.", field="file")

        max_mb = settings.max_file_size / (1024 * 1024)
        if size > settings.max_file_size:
            raise ValidationError(
                message=(
                    f"File size ({size / (1024 * 1024):.1f}MB) exceeds maximum of {max_mb:.0f}MB."
                ),
                field="file",
                context={"max_size_mb": max_mb, "actual_size": size},
            )
        return f".{ext}"

    def _generate_storage_path(self, extension: str) -> Tuple[Path, str]:
        """YYYY/MM/DD/<uuid><ext> under the storage root: (absolute, relative)."""
        date_dir = datetime.now(timezone.utc).strftime("%Y/%m/%d")
        relative_path = f"{date_dir}/{uuid.uuid4()}{extension}"
        return self.storage_root / relative_path, relative_path

    async def store_file(self, content: bytes, extension: str) -> Tuple[str, str]:
        """
        Writes validated content to disk.

        Returns:
            Tuple of (absolute_path, relative_path).

        Raises:
            FileStorageError if directory creation or the write fails.
        """
        absolute_path, relative_path = self._generate_storage_path(extension)
        try:
            absolute_path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(absolute_path, "wb") as f:
                await f.write(content)
        except OSError as e:
            logger.error("Failed to store file at %s: %s", absolute_path, str(e))
            raise FileStorageError(
                message="Failed to save uploaded file. Please try again.",
                context={"path": str(absolute_path), "os_error": str(e)},
            )

        logger.info("File stored: %s (%d bytes)", relative_path, len(content))
        return str(absolute_path), relative_path

    async def validate_and_store(self, filename: str, content: bytes) -> Tuple[str, str]:
        """Validation then storage; returns (absolute_path, relative_path)."""
        ext = self.validate_upload(filename, len(content))
        return await self.store_file(content, ext)

    def public_url(self, relative_path: str) -> str:
        return f"{settings.public_base_url.rstrip('/')}{FILES_ROUTE}{relative_path}"

    async def cleanup_file(self, file_path: str) -> None:
        """
        Best-effort removal of a stored file.

        Missing files are ignored and OS errors are only logged; a leftover
        file is never a user-facing error.
        """
        try:
            path = Path(file_path)
            if path.exists():
                os.remove(path)
                logger.info("Cleaned up file: %s", path.name)
            else:
                logger.debug("Cleanup: file already gone: %s", path.name)
        except OSError as e:
            logger.warning("Failed to clean up file %s: %s", file_path, str(e))

    # ── Read ──────────────────────────────────────────────────────────────

    def resolve_storage_path(self, relative_path: str) -> Path:
        """
        Absolute path of a stored file.

        Raises:
            ValidationError when the path escapes the storage root.
        """
        full_path = (self.storage_root / relative_path).resolve()
        if not str(full_path).startswith(str(self.storage_root) + os.sep):
            logger.warning("Path traversal attempt blocked: %s", relative_path)
            raise ValidationError(
                message="Invalid file path",
                field="path",
                context={"path": relative_path},
            )
        return full_path

    def local_relative_path(self, url: str) -> Optional[str]:
        """Relative storage path when `url` points at this server's file route."""
        prefix = f"{settings.public_base_url.rstrip('/')}{FILES_ROUTE}"
        if url.startswith(prefix):
            return unquote(url[len(prefix):].split("?", 1)[0])
        return None

    async def read_local(self, relative_path: str) -> bytes:
        full_path = self.resolve_storage_path(relative_path)
        if not full_path.is_file():
            raise ExtractionError(
                message="Failed to fetch file from storage",
                context={"path": relative_path},
            )
        try:
            async with aiofiles.open(full_path, "rb") as f:
                return await f.read()
        except OSError as e:
            raise FileStorageError(
                message="Failed to read stored file.",
                context={"path": relative_path, "os_error": str(e)},
            )

    async def fetch(self, url: str) -> Tuple[bytes, str]:
        """
        Downloads the file behind a URL.

        Files stored by this server are read from disk; any other URL is
        fetched over HTTP.

        Returns:
            Tuple of (content, filename).

        Raises:
            ExtractionError when the file cannot be retrieved.
        """
        filename = file_name_from_url(url)

        relative_path = self.local_relative_path(url)
        if relative_path is not None:
            return await self.read_local(relative_path), filename

        try:
            async with httpx.AsyncClient(
                timeout=settings.llm_request_timeout,
                follow_redirects=True,
                transport=self.transport,
            ) as client:
                response = await client.get(url)
        except httpx.HTTPError as e:
            logger.error("Fetching %s failed: %s", url, str(e))
            raise ExtractionError(
                message="Failed to fetch file from storage",
                context={"url": url, "error_type": type(e).__name__},
            )

        if not response.is_success:
            logger.error("Fetching %s returned HTTP %d", url, response.status_code)
            raise ExtractionError(
                message="Failed to fetch file from storage",
                context={"url": url, "status_code": response.status_code},
            )
        return response.content, filename


file_service = FileService()
