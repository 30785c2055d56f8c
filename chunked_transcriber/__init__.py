"""Chunked Transcriber: long-form audio transcription through a remote model.

WHY: Remote speech-to-text models cap how much audio and output text a
single request can carry. A podcast or meeting recording is far longer
than that ceiling, so the file has to be cut into pieces, transcribed
piece by piece, and stitched back into one speaker-attributed timeline.

HOW: Three-stage pipeline: chunk (audio package), transcribe (core
orchestrator driving an api backend), merge (core merger). Each stage is
independently testable.

RULES:
- Chunks are always processed in order, one request at a time
- A single failed chunk never aborts the transcript
- Only decode and credential errors are fatal
"""

__version__ = "0.1.0"
