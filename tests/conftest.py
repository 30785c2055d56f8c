"""Shared test fixtures for the chunked_transcriber test suite.

WHY: The orchestrator, pipeline, and server tests all need a backend that
answers deterministically without touching the network, and synthetic
decoded audio of a known length. Centralizing them here keeps every test
module working from the same fakes.

HOW: ScriptedBackend is a real BaseBackend subclass whose submit() pops
the next scripted answer (a string, or an exception to raise) and records
the chunk index and context it was called with. make_audio builds a
DecodedAudio of any duration at a low sample rate so long sources stay
cheap in memory.

RULES:
- No fixture performs network or subprocess I/O
- Sample rate for synthetic audio is 1000 Hz unless a test asks otherwise
- Sleeps are recorded, never actually awaited
"""

from __future__ import annotations

import json
from typing import Any, Dict, List, Optional, Union

import numpy as np
import pytest

from chunked_transcriber.api.base import BaseBackend
from chunked_transcriber.audio.decoder import DecodedAudio
from chunked_transcriber.core.ir import AudioChunk

Script = Union[str, BaseException]


class ScriptedBackend(BaseBackend):
    """Backend fake that replays scripted answers in call order."""

    def __init__(
        self,
        answers: Optional[List[Script]] = None,
        credential_error: Optional[BaseException] = None,
    ) -> None:
        self.answers: List[Script] = list(answers or [])
        self.calls: List[Dict[str, Any]] = []
        self.credential_checks = 0
        self._credential_error = credential_error

    def check_credentials(self) -> None:
        self.credential_checks += 1
        if self._credential_error is not None:
            raise self._credential_error

    async def submit(
        self,
        chunk: AudioChunk,
        context: Optional[str],
        chunk_total: Optional[int] = None,
    ) -> str:
        self.calls.append({
            "index": chunk.sequence_index,
            "context": context,
            "total": chunk_total,
        })
        if not self.answers:
            return "[]"
        answer = self.answers.pop(0)
        if isinstance(answer, BaseException):
            raise answer
        return answer


def segments_json(*items: tuple) -> str:
    """Serialize (timestamp, speaker, text) tuples the way the model answers."""
    return json.dumps([
        {"timestamp": ts, "speaker": speaker, "text": text}
        for ts, speaker, text in items
    ])


def make_chunk(index: int, duration_s: float = 120.0) -> AudioChunk:
    return AudioChunk(
        payload="UklGRg==",
        mime_type="audio/wav",
        sequence_index=index,
        duration_s=duration_s,
    )


class SleepRecorder:
    """Awaitable stand-in for asyncio.sleep that only records delays."""

    def __init__(self) -> None:
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def scripted_backend():
    """Factory fixture: scripted_backend([answer, ...]) -> ScriptedBackend."""
    return ScriptedBackend


@pytest.fixture
def sleep_recorder():
    return SleepRecorder()


@pytest.fixture
def make_audio():
    """Factory fixture for silent-ish DecodedAudio of a given duration."""

    def _make(
        duration_s: float,
        sample_rate: int = 1000,
        channels: int = 1,
    ) -> DecodedAudio:
        frames = int(round(duration_s * sample_rate))
        ramp = np.linspace(-0.5, 0.5, frames, dtype=np.float32)
        samples = np.tile(ramp, (channels, 1))
        return DecodedAudio(samples=samples, sample_rate=sample_rate)

    return _make


@pytest.fixture
def chunk_factory():
    """Factory fixture: chunk_factory(index, duration_s=120.0) -> AudioChunk."""
    return make_chunk


@pytest.fixture
def answer_json():
    """Factory fixture: answer_json(("00:05", "Speaker 1", "hi"), ...) -> str."""
    return segments_json
