"""Audio decoding, chunking, and WAV encoding.

WHY: The backend accepts small self-contained audio payloads, not a
two-hour video. This package turns arbitrary media bytes into an ordered,
lazily produced sequence of WAV chunks.

HOW: decoder.py shells out to ffmpeg/ffprobe for float PCM, wav.py writes
the canonical 16-bit PCM container, chunker.py slices fixed windows and
base64-encodes each one.

RULES:
- Decode failures raise DecodeError and are fatal
- Chunks are copies of the source samples, never resampled
"""

from chunked_transcriber.audio.chunker import ChunkedAudio, chunk_pcm, split_audio
from chunked_transcriber.audio.decoder import DecodedAudio, DecodeError, decode_audio
from chunked_transcriber.audio.wav import encode_wav

__all__ = [
    "ChunkedAudio",
    "DecodeError",
    "DecodedAudio",
    "chunk_pcm",
    "decode_audio",
    "encode_wav",
    "split_audio",
]
