"""HTTP API for submitting a file and polling its transcript.

WHY: Browser front-ends and automation tools need to hand over one file,
follow the progress messages, and fetch the segments when done, without
holding a connection open for the whole run.

HOW: FastAPI app (app.py) with pydantic schemas (models.py) and an
in-memory job store (jobs.py). The pipeline runs as a background task.
"""
