"""Prompt text sent with every chunk."""

from __future__ import annotations

from typing import Optional

START_OF_AUDIO = "This is the start of the audio."

_INSTRUCTIONS = """STRICT INSTRUCTIONS:
1. DISTINGUISH SPEAKERS: Listen carefully to voice pitch, tone, and cadence. Differentiate clearly between 'Speaker 1', 'Speaker 2', etc.
2. VERBATIM: Transcribe EVERY spoken word. Do not summarize. Include filler words if they add context, but remove excessive stuttering.
3. TIMESTAMPS: Must be relative to the start of THIS chunk (00:00), formatted as HH:MM:SS or MM:SS.
4. FORMAT: Return a valid JSON array matching the schema.
5. CONTINUITY: Ensure the flow of text matches the previous context provided."""


def build_context_block(context: Optional[str]) -> str:
    """Render the previous-context section, or the start-of-audio note."""
    if not context:
        return START_OF_AUDIO
    return (
        "PREVIOUS CONTEXT (The conversation immediately preceding this chunk):\n"
        '"""\n'
        "{}\n"
        '"""\n'
        'IMPORTANT: Use this context to identify speakers. If "Speaker 1" was speaking '
        "at the end of the context, they are likely the first speaker here unless the "
        "voice changes clearly."
    ).format(context)


def build_prompt(part_number: int, context: Optional[str], part_total: Optional[int] = None) -> str:
    """Build the full instruction text for one chunk.

    Args:
        part_number: 1-based chunk number.
        context: Rendered TranscriptContext, or None.
        part_total: Total chunk count, when known.
    """
    if part_total:
        position = "It is part {} of {} of a longer podcast/video.".format(part_number, part_total)
    else:
        position = "It is part {} of a longer podcast/video.".format(part_number)

    return "\n\n".join([
        "You are an expert transcriber. Transcribe this audio chunk verbatim. " + position,
        build_context_block(context),
        _INSTRUCTIONS,
    ])
