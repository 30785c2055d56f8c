"""Configuration constants and .env loading.

WHY: Centralizes all configurable values so they are easy to find,
update, and override. Chunking, retry, and backend defaults are plain
module-level constants, not buried in logic, so the pipeline and its
tests read the same numbers.

HOW: python-dotenv loads the .env file on import. Constants are read
from the environment with documented defaults. The load_api_key()
function provides a clear error when the key is missing.

RULES:
- API key is loaded from .env via python-dotenv, never hardcoded
- GEMINI_API_KEY wins over the legacy API_KEY variable
- SUPPORTED_FORMATS lists accepted audio/video file extensions
- All defaults can be overridden via environment variables
"""

from __future__ import annotations

import os

from dotenv import load_dotenv

# Load .env from the project root (where the script is run from)
load_dotenv()


class CredentialError(ValueError):
    """Raised when the backend API key is missing or rejected.

    WHY: A missing key means no chunk can ever succeed. The pipeline must
    fail once, up front, instead of burning three attempts per chunk.

    RULES:
    - Fatal: never retried, never turned into a placeholder segment
    - Subclasses ValueError so config errors are caught together
    """


# ---------------------------------------------------------------------------
# Supported audio/video file extensions
# ---------------------------------------------------------------------------

SUPPORTED_FORMATS: set[str] = {
    ".aac", ".aiff", ".flac", ".m4a", ".mkv", ".mov",
    ".mp3", ".mp4", ".ogg", ".opus", ".wav", ".webm",
}
"""Audio/video file extensions the ffmpeg decoder is expected to handle."""

# ---------------------------------------------------------------------------
# Chunking and scheduling
# ---------------------------------------------------------------------------

CHUNK_DURATION_S = float(os.getenv("CHUNK_DURATION_S", "120"))
"""Fixed window length. Small enough to stay under the output token cap."""

MAX_ATTEMPTS = int(os.getenv("MAX_ATTEMPTS", "3"))
RETRY_BACKOFF_S = float(os.getenv("RETRY_BACKOFF_S", "1.0"))
INTER_CHUNK_DELAY_S = float(os.getenv("INTER_CHUNK_DELAY_S", "0.5"))
CONTEXT_SEGMENTS = 3

# ---------------------------------------------------------------------------
# Backend configuration defaults
# ---------------------------------------------------------------------------

GEMINI_BASE_URL = os.getenv(
    "GEMINI_BASE_URL", "https://generativelanguage.googleapis.com/v1beta"
)
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-2.5-flash")
REQUEST_TIMEOUT_S = float(os.getenv("REQUEST_TIMEOUT_S", "300"))
TEMPERATURE = 0.1
MAX_OUTPUT_TOKENS = 8192


def load_api_key() -> str:
    """Load the Gemini API key from the environment.

    WHY: The API key is required for every backend call. Loading it from
    the environment (via .env) keeps it out of source code.

    HOW: Reads GEMINI_API_KEY, then API_KEY, from os.environ.

    RULES:
    - Raises CredentialError if both are missing or blank
    - Never returns a default/placeholder value
    """
    key = (os.getenv("GEMINI_API_KEY") or os.getenv("API_KEY") or "").strip()
    if not key:
        raise CredentialError(
            "Gemini API key not configured. "
            "Add GEMINI_API_KEY to the .env file in the app folder."
        )
    return key
