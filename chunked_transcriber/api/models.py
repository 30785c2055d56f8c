"""Gemini generateContent request and response shapes.

WHY: The client builds one request body per chunk and pulls the answer
text out of a nested candidates/content/parts structure. Keeping both
shapes here makes the wire format explicit and testable on its own.

HOW: RESPONSE_SCHEMA is the OpenAPI-style schema Gemini uses for
structured output. build_request_body() assembles the JSON body, and
GenerateContentResponse.from_dict() extracts the text.

RULES:
- Audio goes in as inline_data with mime type "audio/wav"
- responseMimeType is always "application/json"
- temperature 0.1, maxOutputTokens 8192 unless overridden
- Missing candidates/parts yield an empty text, read as "[]" by the caller
- Any other envelope shape is a TypeError, surfaced by the client as a transport error
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from chunked_transcriber.config import MAX_OUTPUT_TOKENS, TEMPERATURE
from chunked_transcriber.core.ir import AudioChunk

RESPONSE_SCHEMA: Dict[str, Any] = {
    "type": "ARRAY",
    "items": {
        "type": "OBJECT",
        "properties": {
            "timestamp": {
                "type": "STRING",
                "description": "The timestamp of the spoken line relative to the audio chunk start (HH:MM:SS or MM:SS).",
            },
            "speaker": {
                "type": "STRING",
                "description": "The identifier of the speaker (e.g., Speaker 1, Speaker 2). Keep consistent with previous context.",
            },
            "text": {
                "type": "STRING",
                "description": "The transcribed text.",
            },
        },
        "required": ["timestamp", "speaker", "text"],
    },
}


def build_request_body(
    chunk: AudioChunk,
    prompt: str,
    temperature: float = TEMPERATURE,
    max_output_tokens: int = MAX_OUTPUT_TOKENS,
) -> Dict[str, Any]:
    """Assemble the generateContent JSON body for one chunk."""
    return {
        "contents": [
            {
                "role": "user",
                "parts": [
                    {"inline_data": {"mime_type": chunk.mime_type, "data": chunk.payload}},
                    {"text": prompt},
                ],
            }
        ],
        "generationConfig": {
            "responseMimeType": "application/json",
            "responseSchema": RESPONSE_SCHEMA,
            "temperature": temperature,
            "maxOutputTokens": max_output_tokens,
        },
    }


@dataclass
class GenerateContentResponse:
    """The parts of a generateContent response the pipeline cares about.

    RULES:
    - from_dict raises TypeError when the envelope is not the documented shape
    """

    text: str
    finish_reason: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Any) -> GenerateContentResponse:
        if not isinstance(data, dict):
            raise TypeError("response body is {}, not an object".format(type(data).__name__))
        candidates = data.get("candidates") or []
        if not isinstance(candidates, list):
            raise TypeError("candidates is not a list")
        if not candidates:
            return cls(text="")

        first = candidates[0]
        if not isinstance(first, dict):
            raise TypeError("candidate is not an object")
        content = first.get("content") or {}
        if not isinstance(content, dict):
            raise TypeError("candidate content is not an object")
        parts = content.get("parts") or []
        if not isinstance(parts, list):
            raise TypeError("content parts is not a list")

        texts = [p["text"] for p in parts if isinstance(p, dict) and isinstance(p.get("text"), str)]
        return cls(
            text="".join(texts),
            finish_reason=first.get("finishReason"),
        )
