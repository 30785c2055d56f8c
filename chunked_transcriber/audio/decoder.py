"""Decode arbitrary audio/video containers into float PCM via ffmpeg.

WHY: Sources arrive as mp3, m4a, mp4, webm, ... The chunker needs raw
per-channel samples at the native sample rate so windows can be cut
without resampling.

HOW: The bytes are written to a temporary file (container formats like
mp4 cannot always be probed from a pipe). ffprobe reports the first audio
stream's sample rate and channel count, then ffmpeg streams the audio
track to stdout as little-endian float32 which numpy reshapes to
(channels, frames).

RULES:
- Any probe/decode failure raises DecodeError (fatal, never retried)
- Sample rate and channel count are kept from the source
- The temporary file is always removed
"""

from __future__ import annotations

import json
import logging
import mimetypes
import subprocess
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

import numpy as np

logger = logging.getLogger(__name__)


class DecodeError(Exception):
    """Raised when the source cannot be decoded into PCM.

    RULES:
    - Fatal: aborts the whole run and is surfaced verbatim to the caller
    """


@dataclass
class DecodedAudio:
    """Decoded source audio.

    RULES:
    - samples: float32 array shaped (channels, frames), values nominally in [-1, 1]
    - sample_rate: native rate of the source audio stream
    """

    samples: np.ndarray
    sample_rate: int

    @property
    def channels(self) -> int:
        return int(self.samples.shape[0])

    @property
    def frames(self) -> int:
        return int(self.samples.shape[1])

    @property
    def duration_s(self) -> float:
        if not self.sample_rate:
            return 0.0
        return self.frames / float(self.sample_rate)


def _stderr_text(exc: subprocess.CalledProcessError) -> str:
    stderr = exc.stderr
    if isinstance(stderr, (bytes, bytearray)):
        stderr = stderr.decode("utf-8", "ignore")
    return (stderr or "").strip() or "unknown error"


def probe_stream(media_path: Path) -> Tuple[int, int]:
    """Return (sample_rate, channels) of the first audio stream."""
    cmd = [
        "ffprobe", "-v", "error", "-select_streams", "a:0",
        "-show_entries", "stream=sample_rate,channels",
        "-of", "json", str(media_path),
    ]
    try:
        result = subprocess.run(cmd, check=True, stdout=subprocess.PIPE, stderr=subprocess.PIPE)
    except FileNotFoundError as e:
        raise DecodeError("ffprobe is not installed or not on PATH") from e
    except subprocess.CalledProcessError as e:
        logger.error("FFprobe error: %s", _stderr_text(e))
        raise DecodeError(
            "Failed to decode audio. The file might be corrupt or the format is not supported."
        ) from e

    try:
        streams = json.loads(result.stdout.decode("utf-8") or "{}").get("streams") or []
        stream = streams[0]
        return int(stream["sample_rate"]), int(stream["channels"])
    except (ValueError, KeyError, IndexError, TypeError) as e:
        raise DecodeError("No decodable audio stream found in {}".format(media_path.name)) from e


def decode_file(media_path: Path) -> DecodedAudio:
    """Decode a media file on disk into a DecodedAudio."""
    media_path = Path(media_path)
    sample_rate, channels = probe_stream(media_path)
    logger.info(
        "Decoding %s (%d Hz, %d channel(s))", media_path.name, sample_rate, channels
    )

    cmd = [
        "ffmpeg", "-nostdin", "-hide_banner", "-loglevel", "error",
        "-i", str(media_path), "-vn",
        "-f", "f32le", "-acodec", "pcm_f32le",
        "-ar", str(sample_rate), "-ac", str(channels),
        "pipe:1",
    ]
    try:
        result = subprocess.run(cmd, check=True, stdout=subprocess.PIPE, stderr=subprocess.PIPE)
    except FileNotFoundError as e:
        raise DecodeError("ffmpeg is not installed or not on PATH") from e
    except subprocess.CalledProcessError as e:
        logger.error("FFmpeg error: %s", _stderr_text(e))
        raise DecodeError(
            "Failed to decode audio. The file might be corrupt or the format is not supported."
        ) from e

    raw = result.stdout
    frame_bytes = 4 * channels
    usable = len(raw) - (len(raw) % frame_bytes)
    interleaved = np.frombuffer(raw[:usable], dtype="<f4")
    samples = interleaved.reshape(-1, channels).T.astype(np.float32)
    return DecodedAudio(samples=samples, sample_rate=sample_rate)


def decode_audio(data: bytes, mime_type: Optional[str] = None) -> DecodedAudio:
    """Decode in-memory media bytes into a DecodedAudio.

    Args:
        data: Raw bytes of the audio or video file.
        mime_type: Declared media type, used only to pick a temp file suffix.

    Returns:
        DecodedAudio with per-channel float32 samples.
    """
    if not data:
        raise DecodeError("Source file is empty.")

    suffix = (mimetypes.guess_extension(mime_type) if mime_type else None) or ".bin"
    with tempfile.TemporaryDirectory(prefix="chunked_transcriber_") as tmp:
        path = Path(tmp) / "source{}".format(suffix)
        path.write_bytes(data)
        return decode_file(path)
