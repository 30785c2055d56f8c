"""Coalesce consecutive same-speaker segments.

WHY: The backend tends to split one speaker turn into many short lines,
and a chunk boundary splits turns too. Readers want one block per turn.

HOW: One left-to-right pass keeping a running segment. The next segment
is folded into it when the speaker matches and neither side is a section
header or an error placeholder; otherwise the running segment is emitted.

RULES:
- Merged text = running text + " " + next text
- Merged timestamp (and id) = the earlier segment's
- Input segments are never mutated
- Idempotent: merging the output again changes nothing
"""

from __future__ import annotations

from dataclasses import replace
from typing import List

from chunked_transcriber.core.ir import Segment


def _mergeable(current: Segment, nxt: Segment) -> bool:
    return (
        current.speaker == nxt.speaker
        and not current.is_section_header
        and not nxt.is_section_header
        and not current.is_error
        and not nxt.is_error
    )


def merge_consecutive_segments(segments: List[Segment]) -> List[Segment]:
    """Return a new list with consecutive same-speaker segments merged."""
    if not segments:
        return []

    merged: List[Segment] = []
    current = replace(segments[0])

    for nxt in segments[1:]:
        if _mergeable(current, nxt):
            current = replace(current, text="{} {}".format(current.text, nxt.text))
        else:
            merged.append(current)
            current = replace(nxt)

    merged.append(current)
    return merged
