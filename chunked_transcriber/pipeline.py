"""End-to-end pipeline: media bytes → merged, speaker-attributed transcript.

WHY: The CLI and the HTTP API run the same three stages in the same
order. One function keeps them from drifting apart.

HOW: split_audio decodes and exposes the lazy chunk sequence,
transcribe_chunks drives the backend chunk by chunk, and
merge_consecutive_segments folds speaker turns together.

RULES:
- DecodeError, CredentialError and TranscriptionCancelled propagate
- Per-chunk failures show up only as placeholder segments
- on_phase (optional) is told "chunking" and "processing" as stages start
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Optional

from chunked_transcriber.api.base import BaseBackend
from chunked_transcriber.audio.chunker import split_audio
from chunked_transcriber.config import CHUNK_DURATION_S
from chunked_transcriber.core.ir import TranscriptionResult
from chunked_transcriber.core.merger import merge_consecutive_segments
from chunked_transcriber.core.orchestrator import ChunkOrchestrator


async def transcribe_media(
    data: bytes,
    backend: BaseBackend,
    mime_type: Optional[str] = None,
    on_status: Optional[Callable[[str], None]] = None,
    on_phase: Optional[Callable[[str], None]] = None,
    should_cancel: Optional[Callable[[], bool]] = None,
    window_s: float = CHUNK_DURATION_S,
) -> TranscriptionResult:
    """Run chunking, transcription, and merging over one media file.

    Args:
        data: Raw bytes of the audio/video file.
        backend: Backend to transcribe chunks with.
        mime_type: Declared media type of the source.
        on_status: Progress message callback.
        on_phase: Phase change callback ("chunking", "processing").
        should_cancel: Checked between chunks; True aborts the run.
        window_s: Chunk window length in seconds.

    Returns:
        TranscriptionResult with merged segments and the source duration.
    """
    # Fail on a missing key before spending time decoding
    backend.check_credentials()

    if on_phase:
        on_phase("chunking")
    chunks = split_audio(data, mime_type, on_status=on_status, window_s=window_s)

    if on_phase:
        on_phase("processing")
    orchestrator = ChunkOrchestrator(
        backend,
        window_s=window_s,
        on_status=on_status,
        should_cancel=should_cancel,
    )
    segments = await orchestrator.run(chunks, chunks.chunk_count)

    return TranscriptionResult(
        segments=merge_consecutive_segments(segments),
        duration_s=chunks.duration_s,
    )
