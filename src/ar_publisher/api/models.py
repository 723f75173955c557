"""Pydantic models for HTTP payloads."""

from datetime import datetime

from pydantic import BaseModel, Field


class UploadResponse(BaseModel):
    """Successful upload payload."""

    message: str
    session_id: str
    public_url: str
    code_image_path: str
    composite_photo_path: str
    published_files: list[str]


class ErrorResponse(BaseModel):
    """Failure payload naming the pipeline stage that failed."""

    detail: str
    stage: str


class AccessCodeCreate(BaseModel):
    """Admin request to issue or extend an access code."""

    code: str = Field(min_length=1, max_length=128)
    expires_at: datetime


class AccessCodeView(BaseModel):
    """Admin view of an access code."""

    code: str
    expires_at: datetime
    expired: bool
