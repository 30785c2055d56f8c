"""Core transcript model, orchestration, and post-processing.

WHY: The core package holds the parts of the pipeline that do not care
where audio comes from or which model transcribes it: the segment data
model, the per-chunk scheduling loop, and the merge pass.

HOW: ir.py defines the data structures, timecode.py converts between
timestamp strings and seconds, response.py parses and repairs backend
output, context.py keeps the rolling speaker context, orchestrator.py
drives the backend chunk by chunk, merger.py coalesces speaker turns.

RULES:
- The orchestrator talks to the backend only through BaseBackend
- The merger is pure: it never mutates its input
"""
