"""Pydantic request/response models for the HTTP API.

WHY: The FastAPI endpoints need typed schemas for response serialization
and automatic OpenAPI documentation.

RULES:
- All models use Field(description=...) for OpenAPI documentation
- Response models never expose internal implementation details
- Segment fields mirror core.ir.Segment exactly
"""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field

from chunked_transcriber.core.ir import Segment, TranscriptionResult


class SegmentModel(BaseModel):
    """One transcript segment."""

    id: str = Field(description="Unique segment identifier.")
    timestamp: str = Field(description="Absolute start time, HH:MM:SS.")
    speaker: str = Field(description="Speaker label, e.g. 'Speaker 1' or 'System'.")
    text: str = Field(description="Transcribed text.")
    is_section_header: bool = Field(default=False, description="True for chapter markers.")
    section_title: Optional[str] = Field(default=None, description="Chapter title, for section headers.")
    note: Optional[str] = Field(default=None, description="Free-text note.")

    @classmethod
    def from_segment(cls, seg: Segment) -> SegmentModel:
        return cls(**seg.to_dict())


class TranscriptModel(BaseModel):
    """Completed transcript."""

    duration_s: float = Field(description="Total source duration in seconds.")
    duration: str = Field(description="Source duration formatted as MM:SS or HH:MM:SS.")
    segments: List[SegmentModel] = Field(description="Merged, ordered transcript segments.")

    @classmethod
    def from_result(cls, result: TranscriptionResult, duration: str) -> TranscriptModel:
        return cls(
            duration_s=result.duration_s,
            duration=duration,
            segments=[SegmentModel.from_segment(s) for s in result.segments],
        )


class JobCreatedResponse(BaseModel):
    """Response for a newly submitted job."""

    id: str = Field(description="Unique job identifier.")
    status: str = Field(description="Initial job status (always 'pending').")
    filename: str = Field(description="Uploaded filename.")


class JobResponse(BaseModel):
    """Transcription job status response.

    RULES:
    - message carries the latest progress message
    - error is only set when status is 'error'
    - transcript is only set when status is 'completed'
    """

    id: str = Field(description="Unique job identifier.")
    status: str = Field(description="pending, chunking, processing, completed or error.")
    filename: str = Field(description="Uploaded filename.")
    created_at: float = Field(description="Job creation timestamp (Unix epoch seconds).")
    message: Optional[str] = Field(default=None, description="Latest progress message.")
    error: Optional[str] = Field(default=None, description="Error message, only when status is 'error'.")
    transcript: Optional[TranscriptModel] = Field(
        default=None, description="Transcript, only when status is 'completed'."
    )


class ErrorResponse(BaseModel):
    """Standard error body."""

    detail: str = Field(description="Human-readable error description.")


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(description="Always 'ok' when the service is up.")
    version: str = Field(description="Package version.")
