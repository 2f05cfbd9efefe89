"""
Text extraction and upload contracts.
"""

import uuid
from typing import Optional

from pydantic import Field

from markwise.schemas.common import CamelModel


class ExtractTextRequest(CamelModel):
    file_url: Optional[str] = Field(default=None, description="URL of the submitted file")
    submission_id: Optional[uuid.UUID] = None


class ExtractRubricRequest(CamelModel):
    file_url: Optional[str] = Field(default=None, description="URL of the rubric file")
    rubric_id: Optional[uuid.UUID] = None


class ExtractionResponse(CamelModel):
    success: bool = True
    extracted_text: str
    # pdf, docx, image, text, other
    file_type: str
    message: str = "Text extraction completed successfully"


class UploadResponse(CamelModel):
    success: bool = True
    file_url: str = Field(description="Absolute URL to pass to the extraction endpoints")
    file_name: str
    size: int
