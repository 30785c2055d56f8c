"""Data structures shared by the chunker, orchestrator, and merger.

WHY: Each stage hands the next one a well-defined value. Keeping those
values in one module makes the contract between stages explicit and
keeps the HTTP layer and CLI serializing the same fields.

HOW: Plain dataclasses:
  AudioChunk          — one base64 WAV window ready for the backend
  RawSegment          — one backend item, timestamp relative to chunk start
  Segment             — one transcript line with an absolute timestamp
  TranscriptionResult — final segments plus total source duration

RULES:
- AudioChunk is frozen; a chunk is consumed once and never mutated
- Segment.timestamp is always absolute once it leaves the orchestrator
- Segment.id is unique for the lifetime of the transcript
"""

from __future__ import annotations

import base64
import uuid
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

ERROR_MARKER = "[Error"
"""Text prefix reserved for placeholder segments."""

SYSTEM_SPEAKER = "System"


@dataclass(frozen=True)
class AudioChunk:
    """One fixed-duration slice of the source, encoded for transport.

    RULES:
    - payload: base64 text of a complete WAV file
    - sequence_index: 0-based position in the source
    - duration_s: actual decoded length (the last chunk may be shorter)
    """

    payload: str
    mime_type: str
    sequence_index: int
    duration_s: float

    def wav_bytes(self) -> bytes:
        """Decode the base64 payload back into WAV file bytes."""
        return base64.b64decode(self.payload)


@dataclass
class RawSegment:
    """One item of a backend response, before timestamp adjustment."""

    timestamp: str
    speaker: str
    text: str

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> RawSegment:
        return cls(
            timestamp=str(data["timestamp"]),
            speaker=str(data["speaker"]),
            text=str(data["text"]),
        )


def new_segment_id(prefix: str = "seg") -> str:
    return "{}-{}".format(prefix, uuid.uuid4().hex)


@dataclass
class Segment:
    """One attributed, timestamped line (or merged block) of transcript text.

    RULES:
    - timestamp: absolute "HH:MM:SS"
    - is_section_header / section_title / note are owned by the
      presentation layer; the pipeline only preserves them
    """

    id: str
    timestamp: str
    speaker: str
    text: str
    is_section_header: bool = False
    section_title: Optional[str] = None
    note: Optional[str] = None

    @property
    def is_error(self) -> bool:
        return self.text.startswith(ERROR_MARKER)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class TranscriptionResult:
    """Final pipeline output handed to the presentation layer."""

    segments: List[Segment] = field(default_factory=list)
    duration_s: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "duration_s": self.duration_s,
            "segments": [s.to_dict() for s in self.segments],
        }
