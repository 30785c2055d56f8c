"""Sequential per-chunk transcription with retries and context priming.

WHY: This is where the pipeline earns its keep. Chunks must go to the
backend strictly in order, because each chunk's trailing dialogue primes
the next request. Individual requests fail or come back truncated often
enough that a single bad chunk must degrade to a visible gap rather than
abort a two-hour transcript.

HOW: ChunkOrchestrator walks the chunk iterator once. Each chunk runs a
small state machine (PENDING → ATTEMPTING → SUCCEEDED | RETRYING |
EXHAUSTED) that produces a tagged result: ChunkSucceeded with adjusted
segments, or ChunkExhausted carrying the reason. Successful segments get
absolute timestamps (offset + relative time) and fresh ids, and feed the
rolling TranscriptContext. Exhausted chunks become one placeholder
segment and clear the context.

RULES:
- check_credentials() runs once before the first chunk; CredentialError is fatal
- Up to max_attempts (3) per chunk; only ChunkTransportError/ChunkParseError retry
- Backoff before retry k+1 is k × retry_backoff_s; context is not touched
- Exhausted chunk → speaker "System", text "[Error: ...]", timestamp = chunk start
- Offset advances by the fixed window after every chunk, not the decoded length
- inter_chunk_delay_s pause before every chunk after the first
- should_cancel() is checked between chunks only
- Absolute timestamps never decrease across the output
"""

from __future__ import annotations

import asyncio
import enum
import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from typing import List, Optional, Union

from chunked_transcriber.api.base import (
    BaseBackend,
    ChunkExhaustedError,
    ChunkParseError,
    ChunkTransportError,
)
from chunked_transcriber.config import (
    CHUNK_DURATION_S,
    INTER_CHUNK_DELAY_S,
    MAX_ATTEMPTS,
    RETRY_BACKOFF_S,
)
from chunked_transcriber.core.context import TranscriptContext
from chunked_transcriber.core.ir import (
    SYSTEM_SPEAKER,
    AudioChunk,
    RawSegment,
    Segment,
    new_segment_id,
)
from chunked_transcriber.core.response import parse_response
from chunked_transcriber.core.timecode import seconds_to_timestamp, timestamp_to_seconds

logger = logging.getLogger(__name__)

SleepFn = Callable[[float], Awaitable[None]]


class TranscriptionCancelled(Exception):
    """Raised between chunks when the caller's cancel flag is set."""


class ChunkState(str, enum.Enum):
    """Lifecycle of a single chunk's attempt sequence."""

    PENDING = "pending"
    ATTEMPTING = "attempting"
    RETRYING = "retrying"
    SUCCEEDED = "succeeded"
    EXHAUSTED = "exhausted"


@dataclass
class ChunkSucceeded:
    sequence_index: int
    attempts: int
    segments: List[Segment] = field(default_factory=list)
    state: ChunkState = ChunkState.SUCCEEDED


@dataclass
class ChunkExhausted:
    sequence_index: int
    attempts: int
    reason: ChunkExhaustedError
    state: ChunkState = ChunkState.EXHAUSTED


ChunkResult = Union[ChunkSucceeded, ChunkExhausted]


def placeholder_text(part_number: int, attempts: int) -> str:
    return (
        "[Error: Failed to transcribe part {} after {} attempts. "
        "Audio data may be missing here.]".format(part_number, attempts)
    )


class ChunkOrchestrator:
    """Drives one backend request sequence per chunk, strictly in order.

    RULES:
    - One orchestrator per transcript: it owns the context and offset
    - Never raises for a single chunk's failure
    """

    def __init__(
        self,
        backend: BaseBackend,
        *,
        window_s: float = CHUNK_DURATION_S,
        max_attempts: int = MAX_ATTEMPTS,
        retry_backoff_s: float = RETRY_BACKOFF_S,
        inter_chunk_delay_s: float = INTER_CHUNK_DELAY_S,
        on_status: Optional[Callable[[str], None]] = None,
        should_cancel: Optional[Callable[[], bool]] = None,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.backend = backend
        self.window_s = window_s
        self.max_attempts = max_attempts
        self.retry_backoff_s = retry_backoff_s
        self.inter_chunk_delay_s = inter_chunk_delay_s
        self._on_status = on_status
        self._should_cancel = should_cancel
        self._sleep = sleep

        self.context = TranscriptContext()
        self.offset_s = 0.0
        self._last_seconds = 0.0

    def _status(self, msg: str) -> None:
        if self._on_status:
            self._on_status(msg)

    async def run(
        self,
        chunks: Iterable[AudioChunk],
        chunk_count: Optional[int] = None,
    ) -> List[Segment]:
        """Transcribe every chunk in order and return the raw segment list.

        Args:
            chunks: Ordered chunk iterable (consumed once).
            chunk_count: Total number of chunks, for progress messages.
                         Defaults to len(chunks) when available.

        Raises:
            CredentialError: The backend has no usable credential.
            TranscriptionCancelled: should_cancel() returned True between chunks.
        """
        self.backend.check_credentials()

        if chunk_count is None and hasattr(chunks, "__len__"):
            chunk_count = len(chunks)  # type: ignore[arg-type]

        segments: List[Segment] = []
        for position, chunk in enumerate(chunks):
            if self._should_cancel and self._should_cancel():
                raise TranscriptionCancelled(
                    "Transcription cancelled before part {}".format(position + 1)
                )
            if position > 0 and self.inter_chunk_delay_s > 0:
                await self._sleep(self.inter_chunk_delay_s)

            result = await self.transcribe_chunk(chunk, chunk_count)
            if isinstance(result, ChunkSucceeded):
                segments.extend(result.segments)
            else:
                logger.warning("Placeholder for part %d: %s", chunk.sequence_index + 1, result.reason)
                segments.append(self._placeholder(chunk))
            self.offset_s += self.window_s

        return segments

    async def transcribe_chunk(
        self,
        chunk: AudioChunk,
        chunk_count: Optional[int] = None,
    ) -> ChunkResult:
        """Run the attempt sequence for one chunk at the current offset."""
        part = chunk.sequence_index + 1
        state = ChunkState.PENDING
        logger.debug("Chunk %d %s", chunk.sequence_index, state.value)
        last_error: Optional[BaseException] = None
        context = self.context.render()

        for attempt in range(1, self.max_attempts + 1):
            state = ChunkState.ATTEMPTING
            self._status(self._progress_message(part, chunk_count, attempt))
            try:
                text = await self.backend.submit(chunk, context, chunk_count)
                raw = parse_response(text)
            except (ChunkTransportError, ChunkParseError) as e:
                last_error = e
                logger.warning(
                    "Error transcribing chunk %d attempt %d: %s",
                    chunk.sequence_index, attempt, e,
                )
                if attempt < self.max_attempts:
                    state = ChunkState.RETRYING
                    delay = attempt * self.retry_backoff_s
                    logger.info("Chunk %d %s in %.1fs", chunk.sequence_index, state.value, delay)
                    await self._sleep(delay)
                continue

            adjusted = self._adjust(raw)
            self.context.extend(adjusted)
            state = ChunkState.SUCCEEDED
            logger.debug("Chunk %d %s with %d segments", chunk.sequence_index, state.value, len(adjusted))
            return ChunkSucceeded(
                sequence_index=chunk.sequence_index,
                attempts=attempt,
                segments=adjusted,
            )

        state = ChunkState.EXHAUSTED
        logger.error(
            "Chunk %d %s after %d attempts", chunk.sequence_index, state.value, self.max_attempts
        )
        self.context.clear()
        return ChunkExhausted(
            sequence_index=chunk.sequence_index,
            attempts=self.max_attempts,
            reason=ChunkExhaustedError(chunk.sequence_index, self.max_attempts, last_error),
        )

    def _adjust(self, raw: List[RawSegment]) -> List[Segment]:
        adjusted: List[Segment] = []
        for item in raw:
            relative = min(timestamp_to_seconds(item.timestamp), self.window_s)
            absolute = max(self.offset_s + relative, self._last_seconds)
            self._last_seconds = absolute
            adjusted.append(Segment(
                id=new_segment_id(),
                timestamp=seconds_to_timestamp(absolute),
                speaker=item.speaker,
                text=item.text,
            ))
        return adjusted

    def _placeholder(self, chunk: AudioChunk) -> Segment:
        self._last_seconds = max(self._last_seconds, self.offset_s)
        return Segment(
            id=new_segment_id("err"),
            timestamp=seconds_to_timestamp(self.offset_s),
            speaker=SYSTEM_SPEAKER,
            text=placeholder_text(chunk.sequence_index + 1, self.max_attempts),
        )

    @staticmethod
    def _progress_message(part: int, total: Optional[int], attempt: int) -> str:
        if total:
            msg = "Transcribing part {} of {}...".format(part, total)
        else:
            msg = "Transcribing part {}...".format(part)
        if attempt > 1:
            msg += " (Attempt {})".format(attempt)
        return msg


async def transcribe_chunks(
    chunks: Iterable[AudioChunk],
    backend: BaseBackend,
    on_status: Optional[Callable[[str], None]] = None,
    chunk_count: Optional[int] = None,
    should_cancel: Optional[Callable[[], bool]] = None,
    sleep: SleepFn = asyncio.sleep,
    window_s: float = CHUNK_DURATION_S,
) -> List[Segment]:
    """Transcribe an ordered chunk sequence into raw (unmerged) segments."""
    orchestrator = ChunkOrchestrator(
        backend,
        window_s=window_s,
        on_status=on_status,
        should_cancel=should_cancel,
        sleep=sleep,
    )
    return await orchestrator.run(chunks, chunk_count)
