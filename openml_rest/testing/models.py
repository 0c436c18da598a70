from __future__ import annotations

from pydantic import BaseModel, Field
from typing import List, Optional


class ApiErrorBody(BaseModel):
    """OpenML-style error detail."""

    code: str
    message: str
    additional_information: Optional[str] = None


class ApiError(BaseModel):
    """Error payload in the shape the OpenML JSON API uses."""

    error: ApiErrorBody


class UploadedPartOut(BaseModel):
    """One file part received by the stub."""

    name: str
    filename: Optional[str] = None
    content_type: Optional[str] = None
    size_bytes: int
    content: str


class EchoOut(BaseModel):
    """What the stub received, in arrival order."""

    method: str
    query: List[List[str]] = Field(default_factory=list)
    fields: List[List[str]] = Field(default_factory=list)
    files: List[UploadedPartOut] = Field(default_factory=list)
    order: List[str] = Field(default_factory=list)
    content_type: Optional[str] = None
