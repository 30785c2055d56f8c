"""Slice decoded audio into fixed-duration WAV chunks.

WHY: One request per file would blow through the backend's response
token ceiling on anything longer than a few minutes. Fixed 120-second
windows keep each answer small while still giving the model enough audio
to tell speakers apart.

HOW: split_audio decodes the whole source up front (so a DecodeError
surfaces before any request is made), then returns a ChunkedAudio whose
iterator copies one window of samples at a time, encodes it as WAV,
base64-encodes it, and reports progress.

RULES:
- chunk_count = ceil(total_frames / window_frames); the last chunk may be shorter
- Samples are copied from the source range, never resampled
- The iterator is lazy, finite, and non-restartable
- The decoded buffer is released once the iterator is exhausted
- Progress message "Preparing audio chunk i of N..." after each chunk
"""

from __future__ import annotations

import base64
import logging
import math
from collections.abc import Callable, Iterator
from typing import Optional

import numpy as np

from chunked_transcriber.audio.decoder import DecodedAudio, decode_audio
from chunked_transcriber.audio.wav import encode_wav
from chunked_transcriber.config import CHUNK_DURATION_S
from chunked_transcriber.core.ir import AudioChunk

logger = logging.getLogger(__name__)

WAV_MIME_TYPE = "audio/wav"


class ChunkedAudio:
    """Lazy, single-pass sequence of AudioChunk objects plus source duration.

    WHY: Holding every encoded chunk of a two-hour file in memory at once
    doubles peak memory for no benefit, because the orchestrator only ever
    needs the next one.

    HOW: Wraps a DecodedAudio and yields chunks from a generator. The
    reference to the decoded samples is dropped when the generator
    finishes or is closed.

    RULES:
    - Iterate once; a second iteration raises RuntimeError
    - duration_s and chunk_count are available before iteration starts
    """

    def __init__(
        self,
        audio: DecodedAudio,
        window_s: float = CHUNK_DURATION_S,
        on_status: Optional[Callable[[str], None]] = None,
    ) -> None:
        if window_s <= 0:
            raise ValueError("window_s must be positive, got {}".format(window_s))
        self._audio: Optional[DecodedAudio] = audio
        self._on_status = on_status
        self.window_s = window_s
        self.sample_rate = audio.sample_rate
        self.channels = audio.channels
        self.total_frames = audio.frames
        self.duration_s = audio.duration_s
        self.window_frames = max(1, int(round(window_s * audio.sample_rate)))
        self.chunk_count = math.ceil(self.total_frames / self.window_frames)
        self._started = False

    def __len__(self) -> int:
        return self.chunk_count

    def __iter__(self) -> Iterator[AudioChunk]:
        if self._started:
            raise RuntimeError("ChunkedAudio can only be iterated once")
        self._started = True
        return self._generate()

    @property
    def released(self) -> bool:
        """True once the decoded samples have been dropped."""
        return self._audio is None

    def _generate(self) -> Iterator[AudioChunk]:
        try:
            for index in range(self.chunk_count):
                chunk = self._build_chunk(index)
                if self._on_status:
                    self._on_status(
                        "Preparing audio chunk {} of {}...".format(index + 1, self.chunk_count)
                    )
                yield chunk
        finally:
            self._audio = None

    def _build_chunk(self, index: int) -> AudioChunk:
        if self._audio is None:
            raise RuntimeError("chunk sequence already released")
        start = index * self.window_frames
        end = min(start + self.window_frames, self.total_frames)

        window = np.array(self._audio.samples[:, start:end], dtype=np.float32, copy=True)
        wav_bytes = encode_wav(window, self.sample_rate)
        logger.debug("Encoded chunk %d: %d frames, %d bytes", index, end - start, len(wav_bytes))

        return AudioChunk(
            payload=base64.b64encode(wav_bytes).decode("ascii"),
            mime_type=WAV_MIME_TYPE,
            sequence_index=index,
            duration_s=(end - start) / float(self.sample_rate),
        )


def chunk_pcm(
    audio: DecodedAudio,
    window_s: float = CHUNK_DURATION_S,
    on_status: Optional[Callable[[str], None]] = None,
) -> ChunkedAudio:
    """Wrap already-decoded audio in a ChunkedAudio sequence."""
    return ChunkedAudio(audio, window_s=window_s, on_status=on_status)


def split_audio(
    data: bytes,
    mime_type: Optional[str] = None,
    on_status: Optional[Callable[[str], None]] = None,
    window_s: float = CHUNK_DURATION_S,
) -> ChunkedAudio:
    """Decode media bytes and return the lazy chunk sequence.

    Args:
        data: Raw bytes of the source audio/video file.
        mime_type: Declared media type of the source.
        on_status: Optional callback for progress messages.
        window_s: Chunk window length in seconds.

    Returns:
        ChunkedAudio exposing duration_s, chunk_count and the chunk iterator.

    Raises:
        DecodeError: The source could not be decoded.
    """
    if on_status:
        on_status("Decoding audio file... (this may take a moment for large files)")
    audio = decode_audio(data, mime_type)
    logger.info(
        "Decoded %.1fs of audio at %d Hz, %d channel(s)",
        audio.duration_s, audio.sample_rate, audio.channels,
    )
    return chunk_pcm(audio, window_s=window_s, on_status=on_status)
