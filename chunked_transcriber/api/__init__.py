"""Remote transcription backends.

WHY: The pipeline needs exactly one capability from the outside world:
"turn this audio chunk into a JSON transcript". This package defines
that capability (base.py) and the Gemini implementation (client.py).

HOW: GeminiBackend wraps httpx.AsyncClient. Request/response shapes live
in models.py.

RULES:
- All HTTP calls go through GeminiBackend (no direct httpx usage elsewhere)
- Authentication is via the x-goog-api-key header from config
"""

from chunked_transcriber.api.base import (
    BaseBackend,
    ChunkExhaustedError,
    ChunkParseError,
    ChunkTransportError,
)
from chunked_transcriber.api.client import GeminiAPIError, GeminiBackend

__all__ = [
    "BaseBackend",
    "ChunkExhaustedError",
    "ChunkParseError",
    "ChunkTransportError",
    "GeminiAPIError",
    "GeminiBackend",
]
