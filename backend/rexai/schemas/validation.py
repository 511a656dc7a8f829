"""Pydantic schemas for medical response validation."""

from typing import Any

from pydantic import BaseModel, Field


class StructuredData(BaseModel):
    type: str | None = None
    data: Any = None


class VoiceResponse(BaseModel):
    """A structured AI medical response, as produced for voice playback."""

    voice_summary: str = ""
    structured_data: StructuredData | None = None


class ValidationResultResponse(BaseModel):
    is_valid: bool
    flags: list[str] = Field(default_factory=list)
