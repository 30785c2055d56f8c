"""Command-line interface for the Chunked Transcriber.

WHY: Users need a simple way to transcribe a long recording from the
terminal. The CLI wires together the full pipeline (file validation,
decoding and chunking, sequential Gemini transcription, speaker-turn
merging, and saving) behind a single command.

HOW: Uses argparse to accept an input file, model, output directory and
log level. Runs the async pipeline via asyncio.run(). Status messages go
to stderr; the transcript JSON is saved next to the source (or to
--output-dir).

RULES:
- Positional argument: input audio/video file path
- Validates file extension against SUPPORTED_FORMATS before any work
- Output naming: {stem}-transcript.json, numeric suffix for conflicts
- Status output goes to stderr (not stdout)
- Fatal errors (decode, credential) exit with code 1; Ctrl-C exits with 130
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import mimetypes
import sys
from pathlib import Path
from typing import List, Optional

from chunked_transcriber.api.client import GeminiBackend
from chunked_transcriber.audio.decoder import DecodeError
from chunked_transcriber.config import GEMINI_MODEL, SUPPORTED_FORMATS
from chunked_transcriber.core.ir import TranscriptionResult
from chunked_transcriber.core.timecode import format_duration
from chunked_transcriber.pipeline import transcribe_media

OUTPUT_SUFFIX = "-transcript.json"


def _status(msg: str) -> None:
    """Print a status message to stderr.

    RULES:
    - All status messages go to stderr
    - Always flush after writing
    """
    print(msg, file=sys.stderr, flush=True)


def _resolve_output_path(
    stem: str,
    suffix: str,
    output_dir: Path,
) -> Path:
    """Resolve the output file path, adding numeric suffix on conflict.

    WHY: Users may run the transcriber multiple times on the same file.
    Overwriting previous output would lose work (and a paid API run).

    RULES:
    - First attempt: {stem}{suffix} (e.g. interview-transcript.json)
    - Conflict: insert counter before extension (interview-transcript-2.json)
    - Counter starts at 2 and increments
    """
    base_path = output_dir / "{}{}".format(stem, suffix)
    if not base_path.exists():
        return base_path

    dot_idx = suffix.rfind(".")
    if dot_idx > 0:
        suffix_name = suffix[:dot_idx]
        suffix_ext = suffix[dot_idx:]
    else:
        suffix_name = suffix
        suffix_ext = ""

    counter = 2
    while True:
        candidate = output_dir / "{}{}-{}{}".format(stem, suffix_name, counter, suffix_ext)
        if not candidate.exists():
            return candidate
        counter += 1


def _save_result(
    result: TranscriptionResult,
    source_name: str,
    output_dir: Path,
) -> Path:
    """Write the transcript JSON and return the path written."""
    path = _resolve_output_path(Path(source_name).stem, OUTPUT_SUFFIX, output_dir)
    payload = dict(result.to_dict(), source_filename=source_name)
    path.write_text(json.dumps(payload, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
    return path


async def _run_pipeline(args: argparse.Namespace) -> None:
    """Execute the full transcription pipeline.

    RULES:
    - Validate file and output directory before any decoding or API call
    - Status messages to stderr at each step
    - Save one JSON transcript with conflict avoidance
    """
    input_path = Path(args.input_file).resolve()

    if not input_path.is_file():
        print("Error: File not found: {}".format(input_path), file=sys.stderr)
        sys.exit(1)

    ext = input_path.suffix.lower()
    if ext not in SUPPORTED_FORMATS:
        print(
            "Error: Unsupported file type '{}'. Supported formats: {}".format(
                ext, ", ".join(sorted(SUPPORTED_FORMATS))
            ),
            file=sys.stderr,
        )
        sys.exit(1)

    output_dir = Path(args.output_dir).resolve() if args.output_dir else input_path.parent
    if not output_dir.is_dir():
        print("Error: Output directory does not exist: {}".format(output_dir), file=sys.stderr)
        sys.exit(1)

    mime_type, _ = mimetypes.guess_type(input_path.name)

    try:
        async with GeminiBackend(model=args.model) as backend:
            _status("Reading {}...".format(input_path.name))
            result = await transcribe_media(
                input_path.read_bytes(),
                backend,
                mime_type=mime_type,
                on_status=_status,
            )
    except (DecodeError, ValueError) as e:
        # Decode and config errors (missing API key, ...)
        print("Error: {}".format(e), file=sys.stderr)
        sys.exit(1)

    saved = _save_result(result, input_path.name, output_dir)
    failed = sum(1 for s in result.segments if s.is_error)

    _status("")
    _status("Done! {} segments, {} of audio.".format(
        len(result.segments), format_duration(result.duration_s)
    ))
    if failed:
        _status("  Warning: {} part(s) could not be transcribed.".format(failed))
    _status("  Saved: {}".format(saved))


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the CLI.

    RULES:
    - Positional: input_file (required)
    - Optional: --output-dir, --model, --log-level
    """
    parser = argparse.ArgumentParser(
        prog="chunked_transcriber",
        description="Transcribe a long audio/video file with Gemini, chunk by chunk, "
                    "and save a speaker-attributed JSON transcript.",
    )

    parser.add_argument(
        "input_file",
        help="Path to the audio or video file to transcribe.",
    )

    parser.add_argument(
        "--output-dir",
        default=None,
        help="Directory to save the transcript (default: same as input file).",
    )

    parser.add_argument(
        "--model",
        default=GEMINI_MODEL,
        help="Gemini model name (default: %(default)s).",
    )

    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level for diagnostic output (default: %(default)s).",
    )

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """Entry point for the CLI.

    RULES:
    - argv=None means use sys.argv (normal CLI invocation)
    - Explicit argv is for testing
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    try:
        asyncio.run(_run_pipeline(args))
    except KeyboardInterrupt:
        _status("\nCancelled by user.")
        sys.exit(130)


if __name__ == "__main__":
    main()
