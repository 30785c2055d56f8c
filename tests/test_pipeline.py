"""End-to-end pipeline tests with decoding and the backend faked.

WHY: transcribe_media glues chunking, orchestration and merging. These
tests check the glue: phases fire in order, fatal errors surface before
any request, and the result carries merged segments plus the source
duration.

HOW: decode_audio is patched where the chunker imports it, so no ffmpeg
is needed. The ScriptedBackend fixture answers each chunk. Windows are
kept to two chunks so the real inter-chunk pause stays short.
"""

from __future__ import annotations

import asyncio
from unittest.mock import patch

import pytest

from chunked_transcriber.audio.decoder import DecodeError
from chunked_transcriber.config import CredentialError
from chunked_transcriber.pipeline import transcribe_media

DECODE = "chunked_transcriber.audio.chunker.decode_audio"


class TestTranscribeMedia:
    """transcribe_media() runs all three stages."""

    def test_merges_across_chunk_boundary(self, scripted_backend, make_audio, answer_json):
        backend = scripted_backend([
            answer_json(("00:00", "Speaker 1", "Hello"), ("00:50", "Speaker 1", "and welcome")),
            answer_json(("00:02", "Speaker 1", "to the show."), ("00:30", "Speaker 2", "Thanks.")),
        ])
        phases = []
        messages = []
        with patch(DECODE, return_value=make_audio(200.0)):
            result = asyncio.run(transcribe_media(
                b"fake",
                backend,
                "audio/mpeg",
                on_status=messages.append,
                on_phase=phases.append,
            ))

        assert phases == ["chunking", "processing"]
        assert result.duration_s == 200.0
        assert [(s.timestamp, s.speaker, s.text) for s in result.segments] == [
            ("00:00:00", "Speaker 1", "Hello and welcome to the show."),
            ("00:02:30", "Speaker 2", "Thanks."),
        ]
        assert "Transcribing part 2 of 2..." in messages
        assert "Preparing audio chunk 1 of 2..." in messages

    def test_result_serializes(self, scripted_backend, make_audio, answer_json):
        backend = scripted_backend([answer_json(("00:01", "Speaker 1", "hi"))])
        with patch(DECODE, return_value=make_audio(30.0)):
            result = asyncio.run(transcribe_media(b"fake", backend))

        data = result.to_dict()
        assert data["duration_s"] == 30.0
        assert data["segments"][0]["text"] == "hi"
        assert data["segments"][0]["is_section_header"] is False

    def test_decode_error_is_fatal(self, scripted_backend):
        backend = scripted_backend()
        with patch(DECODE, side_effect=DecodeError("corrupt")):
            with pytest.raises(DecodeError):
                asyncio.run(transcribe_media(b"junk", backend))
        assert backend.calls == []

    def test_missing_credentials_checked_before_decoding(self, scripted_backend):
        backend = scripted_backend(credential_error=CredentialError("no key"))
        with patch(DECODE) as mock_decode:
            with pytest.raises(CredentialError):
                asyncio.run(transcribe_media(b"fake", backend))
        mock_decode.assert_not_called()

    def test_empty_audio_gives_empty_transcript(self, scripted_backend, make_audio):
        backend = scripted_backend()
        with patch(DECODE, return_value=make_audio(0.0)):
            result = asyncio.run(transcribe_media(b"fake", backend))
        assert result.segments == []
        assert result.duration_s == 0.0
        assert backend.calls == []
