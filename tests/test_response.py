"""Unit tests for response repair and parsing.

WHY: Truncated answers are the most common failure on long chunks.
Repair must keep every complete object and drop only the partial tail,
and anything that still isn't a transcript must become ChunkParseError
so the orchestrator retries.
"""

from __future__ import annotations

import json

import pytest

from chunked_transcriber.api.base import ChunkParseError
from chunked_transcriber.core.response import parse_response, repair_truncated_json

TRUNCATED = (
    '[{"timestamp":"00:01","speaker":"Speaker 1","text":"hi"},'
    '{"timestamp":"00:05","speaker":"Speaker 1","text":"there"'
)


class TestRepairTruncatedJson:
    """repair_truncated_json() closes the array at the last whole object."""

    def test_cuts_back_to_last_complete_object(self):
        repaired = repair_truncated_json(TRUNCATED)
        assert json.loads(repaired) == [
            {"timestamp": "00:01", "speaker": "Speaker 1", "text": "hi"}
        ]

    def test_complete_array_untouched(self):
        text = '[{"a": 1}]'
        assert repair_truncated_json("  " + text + "\n") == text

    def test_falls_back_to_last_brace(self):
        assert repair_truncated_json('[{"a": 1}') == '[{"a": 1}]'

    def test_no_object_left_unchanged(self):
        assert repair_truncated_json('[{"a": ') == '[{"a":'

    def test_trailing_comma_after_object(self):
        assert json.loads(repair_truncated_json('[{"a": 1},{"a": 2},')) == [{"a": 1}, {"a": 2}]


class TestParseResponse:
    """parse_response() returns RawSegments or raises ChunkParseError."""

    def test_valid_array(self):
        text = json.dumps([
            {"timestamp": "00:00", "speaker": "Speaker 1", "text": "Hello."},
            {"timestamp": "00:04", "speaker": "Speaker 2", "text": "Hi."},
        ])
        raw = parse_response(text)
        assert [(r.timestamp, r.speaker, r.text) for r in raw] == [
            ("00:00", "Speaker 1", "Hello."),
            ("00:04", "Speaker 2", "Hi."),
        ]

    def test_truncated_response_is_repaired(self):
        raw = parse_response(TRUNCATED)
        assert len(raw) == 1
        assert raw[0].text == "hi"

    def test_empty_text_is_empty_list(self):
        assert parse_response("") == []
        assert parse_response("[]") == []

    def test_garbage_raises(self):
        with pytest.raises(ChunkParseError):
            parse_response("I'm sorry, I can't help with that.")

    def test_object_instead_of_array_raises(self):
        with pytest.raises(ChunkParseError, match="schema"):
            parse_response('{"timestamp": "00:00", "speaker": "A", "text": "x"}')

    def test_missing_field_raises(self):
        with pytest.raises(ChunkParseError):
            parse_response('[{"timestamp": "00:00", "speaker": "A"}]')

    def test_non_string_field_raises(self):
        with pytest.raises(ChunkParseError):
            parse_response('[{"timestamp": 5, "speaker": "A", "text": "x"}]')
