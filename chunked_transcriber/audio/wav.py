"""Canonical 16-bit PCM WAV encoding.

WHY: Each chunk must be a self-contained file the backend can decode on
its own. Uncompressed 16-bit PCM with the canonical 44-byte header is the
lowest common denominator every audio consumer accepts.

HOW: struct packs the RIFF/WAVE/fmt /data header; numpy clamps, scales,
rounds, and interleaves the samples.

RULES:
- Header: RIFF size = 36 + data size, fmt chunk size 16, format 1 (PCM)
- byte rate = sample_rate × channels × 2, block align = channels × 2
- Samples clamped to [-1, 1]; negatives scale by 32768, positives by 32767
  so +1.0 maps to 32767 without overflow
- Little-endian, channels interleaved frame by frame
"""

from __future__ import annotations

import struct

import numpy as np

WAV_HEADER_BYTES = 44
BITS_PER_SAMPLE = 16
_PCM_FORMAT = 1


def float_to_int16(samples: np.ndarray) -> np.ndarray:
    """Convert float samples to int16 with asymmetric scaling."""
    clipped = np.clip(np.asarray(samples, dtype=np.float64), -1.0, 1.0)
    scaled = np.where(clipped < 0, clipped * 32768.0, clipped * 32767.0)
    # Round half up
    return np.floor(scaled + 0.5).astype("<i2")


def wav_header(frame_count: int, channels: int, sample_rate: int) -> bytes:
    """Build the 44-byte canonical WAV header."""
    data_size = frame_count * channels * 2
    return struct.pack(
        "<4sI4s4sIHHIIHH4sI",
        b"RIFF",
        36 + data_size,
        b"WAVE",
        b"fmt ",
        16,
        _PCM_FORMAT,
        channels,
        sample_rate,
        sample_rate * channels * 2,
        channels * 2,
        BITS_PER_SAMPLE,
        b"data",
        data_size,
    )


def encode_wav(samples: np.ndarray, sample_rate: int) -> bytes:
    """Encode (channels, frames) float samples as a WAV file.

    Args:
        samples: Array shaped (channels, frames).
        sample_rate: Sample rate written to the header.

    Returns:
        Complete WAV file bytes.
    """
    samples = np.asarray(samples)
    if samples.ndim == 1:
        samples = samples[np.newaxis, :]
    channels, frame_count = samples.shape

    # (channels, frames) -> frames x channels, row-major = interleaved
    pcm = float_to_int16(samples).T.tobytes()
    return wav_header(frame_count, channels, sample_rate) + pcm
