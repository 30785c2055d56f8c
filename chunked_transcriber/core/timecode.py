"""Conversion between timestamp strings and seconds."""

from __future__ import annotations

import math


def timestamp_to_seconds(ts: str) -> float:
    """Parse "HH:MM:SS", "MM:SS" or a bare seconds value into seconds.

    Missing or non-numeric components count as 0, so a malformed
    timestamp lands at the start of its chunk instead of failing it.

    RULES:
    - A bare number is read as seconds ("5" -> 5.0), not rejected
    - With four or more fields only the last three (H:M:S) are used
    """
    parts = [p.strip() for p in str(ts).strip().split(":")][-3:]
    values = []
    for part in parts:
        try:
            value = float(part)
        except ValueError:
            value = 0.0
        if math.isnan(value) or math.isinf(value) or value < 0:
            value = 0.0
        values.append(value)

    seconds = 0.0
    for value in values:
        seconds = seconds * 60 + value
    return seconds


def seconds_to_timestamp(total_seconds: float) -> str:
    """Format seconds as zero-padded "HH:MM:SS" (fractions truncated)."""
    total = max(0, int(math.floor(total_seconds)))
    h, rem = divmod(total, 3600)
    m, s = divmod(rem, 60)
    return "{:02d}:{:02d}:{:02d}".format(h, m, s)


def format_duration(seconds: float) -> str:
    """Format a duration as "MM:SS", or "HH:MM:SS" from one hour up."""
    total = max(0, int(math.floor(seconds)))
    h, rem = divmod(total, 3600)
    m, s = divmod(rem, 60)
    if h > 0:
        return "{:02d}:{:02d}:{:02d}".format(h, m, s)
    return "{:02d}:{:02d}".format(m, s)
