"""Rolling speaker context carried from one chunk to the next.

WHY: Each chunk is transcribed in isolation, so the model has no idea
that "Speaker 2" in part 4 is the same voice as "Speaker 2" in part 3.
Handing it the last few lines of the previous chunk keeps labels stable
across boundaries.

HOW: A deque with a fixed maxlen holds the most recent segments. The
rendered block is "speaker: text" lines joined by newlines, so prompt
size stays constant however long the transcript grows.

RULES:
- Capacity is CONTEXT_SEGMENTS (3)
- Only successfully transcribed segments are added; placeholders never are
- clear() after an exhausted chunk, so a gap is not bridged with stale lines
- render() returns None when empty
"""

from __future__ import annotations

from collections import deque
from collections.abc import Iterable
from typing import Deque, Optional, Tuple

from chunked_transcriber.config import CONTEXT_SEGMENTS
from chunked_transcriber.core.ir import Segment


class TranscriptContext:
    """Fixed-capacity ordered buffer of the latest (speaker, text) pairs."""

    def __init__(self, capacity: int = CONTEXT_SEGMENTS) -> None:
        self._lines: Deque[Tuple[str, str]] = deque(maxlen=capacity)

    def __len__(self) -> int:
        return len(self._lines)

    def __bool__(self) -> bool:
        return bool(self._lines)

    def extend(self, segments: Iterable[Segment]) -> None:
        for seg in segments:
            self._lines.append((seg.speaker, seg.text))

    def clear(self) -> None:
        self._lines.clear()

    def render(self) -> Optional[str]:
        if not self._lines:
            return None
        return "\n".join("{}: {}".format(speaker, text) for speaker, text in self._lines)
