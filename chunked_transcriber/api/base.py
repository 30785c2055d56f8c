"""Abstract transcription backend and per-attempt error types.

WHY: The orchestrator must not know whether chunks go to Gemini, another
hosted model, or a scripted fake in a test. A narrow interface keeps
the retry and context logic independent of any HTTP details.

HOW: BaseBackend is an ABC with one required coroutine, ``submit()``,
which sends a chunk plus optional context and returns the raw response
text. ``check_credentials()`` is the fatal precondition hook, called once
before the first chunk.

RULES:
- submit() raises ChunkTransportError for any network/HTTP failure
- submit() never parses the response; parsing belongs to the orchestrator
- check_credentials() raises CredentialError; the default accepts everything

To add a new backend:
1. Subclass BaseBackend
2. Implement submit() (and check_credentials() if it needs a key)
3. Pass an instance to transcribe_chunks()
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from chunked_transcriber.core.ir import AudioChunk


class ChunkTransportError(Exception):
    """A single attempt's backend call failed (network error, 5xx, ...).

    RULES:
    - Recoverable: the orchestrator retries with linear backoff
    """


class ChunkParseError(Exception):
    """A single attempt's response failed strict and repaired parsing.

    RULES:
    - Recoverable: treated exactly like a transport failure
    """


class ChunkExhaustedError(Exception):
    """A chunk failed every attempt.

    WHY: Carried as the reason of an exhausted chunk result. It is never
    raised out of the pipeline; the chunk becomes a placeholder segment.
    """

    def __init__(self, sequence_index: int, attempts: int, last_error: Optional[BaseException]) -> None:
        self.sequence_index = sequence_index
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            "Chunk {} failed after {} attempts: {}".format(sequence_index, attempts, last_error)
        )


class BaseBackend(ABC):
    """Abstract base for remote transcription backends."""

    def check_credentials(self) -> None:
        """Raise CredentialError if the backend cannot authenticate."""

    @abstractmethod
    async def submit(
        self,
        chunk: AudioChunk,
        context: Optional[str],
        chunk_total: Optional[int] = None,
    ) -> str:
        """Transcribe one chunk and return the raw response text.

        Args:
            chunk: The audio chunk to transcribe.
            context: Trailing dialogue of the previous chunk, or None at
                     the start of the audio or after a gap.
            chunk_total: Total number of chunks, when known (prompt hint only).

        Returns:
            Response text expected to be a JSON array of
            {timestamp, speaker, text} objects. May be truncated.
        """
