"""Tolerant parsing of backend responses.

WHY: The model is asked for a JSON array but its output is capped at a
fixed token budget. Long chunks regularly come back cut off mid-object,
and dropping the whole chunk for a missing "]" would throw away minutes
of otherwise good transcript.

HOW: Strict json.loads first. On failure, repair_truncated_json cuts the
text back to the last complete object and closes the array, then the
result is parsed again. The parsed value is validated against
RESPONSE_JSON_SCHEMA with jsonschema before being turned into RawSegments.

RULES:
- Text already ending in "]" is left untouched by the repair
- Prefer the last "}," boundary; fall back to the last "}"
- Anything still unparseable or off-schema raises ChunkParseError
- An empty response counts as an empty array
"""

from __future__ import annotations

import json
import logging
from typing import Any, List

import jsonschema

from chunked_transcriber.api.base import ChunkParseError
from chunked_transcriber.core.ir import RawSegment

logger = logging.getLogger(__name__)

RESPONSE_JSON_SCHEMA = {
    "type": "array",
    "items": {
        "type": "object",
        "properties": {
            "timestamp": {"type": "string"},
            "speaker": {"type": "string"},
            "text": {"type": "string"},
        },
        "required": ["timestamp", "speaker", "text"],
    },
}


def repair_truncated_json(json_str: str) -> str:
    """Close a truncated JSON array at the last complete object.

    Example:
        '[{"a":1},{"a":2' -> '[{"a":1}]'
    """
    cleaned = json_str.strip()
    if cleaned.endswith("]"):
        return cleaned

    last_object_end = cleaned.rfind("},")
    if last_object_end != -1:
        return cleaned[: last_object_end + 1] + "]"

    last_brace = cleaned.rfind("}")
    if last_brace != -1:
        return cleaned[: last_brace + 1] + "]"

    return cleaned


def _load(text: str) -> Any:
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        logger.info("Response is not valid JSON, attempting truncation repair")

    repaired = repair_truncated_json(text)
    try:
        return json.loads(repaired)
    except json.JSONDecodeError as e:
        raise ChunkParseError("Response is not valid JSON even after repair: {}".format(e)) from e


def parse_response(text: str) -> List[RawSegment]:
    """Parse backend response text into RawSegments.

    Raises:
        ChunkParseError: The text cannot be parsed or does not match the schema.
    """
    data = _load(text or "[]")
    try:
        jsonschema.validate(instance=data, schema=RESPONSE_JSON_SCHEMA)
    except jsonschema.ValidationError as e:
        raise ChunkParseError("Response does not match schema: {}".format(e.message)) from e
    return [RawSegment.from_dict(item) for item in data]
