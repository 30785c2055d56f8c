"""FastAPI application with transcription routes and OpenAPI docs.

WHY: A browser front-end (or curl) needs to submit one recording, watch
the progress messages, and read the merged transcript. FastAPI provides
automatic OpenAPI documentation, request validation, and background
task support.

HOW: POST /transcriptions saves the upload into a job directory and runs
the pipeline in the background. GET /transcriptions lists jobs and
GET /transcriptions/{id} returns status, the latest progress message,
and the transcript once complete. DELETE removes the job; a running
pipeline notices at its next chunk boundary and stops.

RULES:
- Error responses use a consistent ErrorResponse schema
- File validation checks extension against SUPPORTED_FORMATS
- The job store is a module-level singleton
- Fatal pipeline errors mark the job 'error' with the message verbatim
"""

from __future__ import annotations

import asyncio
import logging
import mimetypes
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Annotated, List, Optional

from fastapi import BackgroundTasks, FastAPI, File, Form, HTTPException, UploadFile
from fastapi.responses import Response

from chunked_transcriber import __version__
from chunked_transcriber.api.client import GeminiBackend
from chunked_transcriber.config import GEMINI_MODEL, SUPPORTED_FORMATS
from chunked_transcriber.core.orchestrator import TranscriptionCancelled
from chunked_transcriber.core.timecode import format_duration
from chunked_transcriber.pipeline import transcribe_media
from chunked_transcriber.server.jobs import Job, JobStatus, JobStore
from chunked_transcriber.server.models import (
    ErrorResponse,
    HealthResponse,
    JobCreatedResponse,
    JobResponse,
    TranscriptModel,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# App and store setup
# ---------------------------------------------------------------------------

job_store = JobStore()


async def _periodic_cleanup() -> None:
    """Run job cleanup every 5 minutes."""
    while True:
        await asyncio.sleep(300)
        job_store.cleanup_expired()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start periodic cleanup on startup, cancel on shutdown."""
    task = asyncio.create_task(_periodic_cleanup())
    yield
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass


app = FastAPI(
    lifespan=lifespan,
    title="Chunked Transcriber API",
    description=(
        "Submit one long audio/video file, poll for progress, and read the "
        "speaker-attributed transcript produced chunk by chunk."
    ),
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _job_to_response(job: Job) -> JobResponse:
    """Convert an internal Job dataclass to a JobResponse Pydantic model."""
    transcript = None
    if job.status == JobStatus.COMPLETED and job.result is not None:
        transcript = TranscriptModel.from_result(job.result, format_duration(job.result.duration_s))
    return JobResponse(
        id=job.id,
        status=job.status.value,
        filename=job.filename,
        created_at=job.created_at,
        message=job.message,
        error=job.error,
        transcript=transcript,
    )


def _validate_file_extension(filename: str) -> None:
    """Raise HTTPException if the file extension is not supported."""
    ext = Path(filename).suffix.lower()
    if ext not in SUPPORTED_FORMATS:
        raise HTTPException(
            status_code=400,
            detail="Unsupported file type '{}'. Supported formats: {}".format(
                ext, ", ".join(sorted(SUPPORTED_FORMATS))
            ),
        )


def _make_backend(model: Optional[str]) -> GeminiBackend:
    return GeminiBackend(model=model)


async def _run_transcription_pipeline(job_id: str, store: JobStore) -> None:
    """Run the full pipeline for a job and record the outcome.

    RULES:
    - Progress messages are stored on the job as they arrive
    - A deleted job cancels the run at the next chunk boundary
    - Any escaping exception marks the job as error
    """
    job = store.get_job(job_id)
    if job is None:
        return

    def on_status(msg: str) -> None:
        store.update_job(job_id, message=msg)

    def on_phase(phase: str) -> None:
        status = JobStatus.CHUNKING if phase == "chunking" else JobStatus.PROCESSING
        store.update_job(job_id, status=status)

    try:
        data = job.input_path.read_bytes()
        async with _make_backend(job.config.get("model")) as backend:
            result = await transcribe_media(
                data,
                backend,
                mime_type=job.mime_type,
                on_status=on_status,
                on_phase=on_phase,
                should_cancel=lambda: not store.is_active(job_id),
            )
        store.update_job(
            job_id,
            status=JobStatus.COMPLETED,
            result=result,
            message="Transcription complete.",
        )
    except TranscriptionCancelled:
        logger.info("Job %s cancelled", job_id)
    except Exception as exc:
        logger.exception("Transcription pipeline failed for job %s", job_id)
        store.update_job(job_id, status=JobStatus.ERROR, error=str(exc))


def _run_transcription_sync(job_id: str, store: JobStore) -> None:
    """Synchronous wrapper for the async pipeline.

    WHY: FastAPI BackgroundTasks run synchronous callables in a thread
    pool. This wraps the async pipeline with asyncio.run().
    """
    asyncio.run(_run_transcription_pipeline(job_id, store))


# ---------------------------------------------------------------------------
# Endpoints: Transcriptions
# ---------------------------------------------------------------------------


@app.post(
    "/transcriptions",
    response_model=JobCreatedResponse,
    status_code=201,
    tags=["transcriptions"],
    summary="Submit a transcription job",
    description=(
        "Upload an audio or video file. Returns a job ID immediately. "
        "Poll GET /transcriptions/{id} for progress and the transcript."
    ),
    responses={
        400: {"model": ErrorResponse, "description": "Invalid file type"},
        429: {"model": ErrorResponse, "description": "Too many concurrent jobs"},
    },
)
async def create_transcription(
    background_tasks: BackgroundTasks,
    file: Annotated[
        UploadFile,
        File(description="Audio or video file to transcribe"),
    ],
    model: Annotated[
        Optional[str],
        Form(description="Gemini model name. Defaults to the server's configured model."),
    ] = None,
) -> JobCreatedResponse:
    # Sanitize filename to prevent path traversal
    filename = Path(file.filename or "upload").name
    _validate_file_extension(filename)

    mime_type = file.content_type
    if not mime_type or mime_type == "application/octet-stream":
        mime_type = mimetypes.guess_type(filename)[0]

    try:
        job = job_store.create_job(
            filename=filename,
            mime_type=mime_type,
            config={"model": model or GEMINI_MODEL},
        )
    except ValueError as exc:
        raise HTTPException(status_code=429, detail=str(exc))

    job.input_path.write_bytes(await file.read())

    background_tasks.add_task(_run_transcription_sync, job.id, job_store)

    return JobCreatedResponse(
        id=job.id,
        status=job.status.value,
        filename=job.filename,
    )


@app.get(
    "/transcriptions",
    response_model=List[JobResponse],
    tags=["transcriptions"],
    summary="List transcription jobs",
    description="Returns every job still held by the server, oldest first.",
)
async def list_transcriptions() -> List[JobResponse]:
    return [_job_to_response(job) for job in job_store.list_jobs()]


@app.get(
    "/transcriptions/{job_id}",
    response_model=JobResponse,
    tags=["transcriptions"],
    summary="Get transcription job status",
    description=(
        "Returns the current status and latest progress message. The "
        "transcript is included once the job is completed."
    ),
    responses={
        404: {"model": ErrorResponse, "description": "Job not found"},
    },
)
async def get_transcription(job_id: str) -> JobResponse:
    job = job_store.get_job(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Job not found: {}".format(job_id))
    return _job_to_response(job)


@app.delete(
    "/transcriptions/{job_id}",
    status_code=204,
    tags=["transcriptions"],
    summary="Delete or cancel a transcription job",
    description=(
        "Delete a job and its uploaded file. A job that is still running "
        "stops before its next chunk."
    ),
    responses={
        404: {"model": ErrorResponse, "description": "Job not found"},
    },
)
async def delete_transcription(job_id: str) -> Response:
    if not job_store.delete_job(job_id):
        raise HTTPException(status_code=404, detail="Job not found: {}".format(job_id))
    return Response(status_code=204)


# ---------------------------------------------------------------------------
# Endpoints: Health
# ---------------------------------------------------------------------------


@app.get(
    "/health",
    response_model=HealthResponse,
    tags=["health"],
    summary="Health check",
)
async def health_check() -> HealthResponse:
    return HealthResponse(status="ok", version=__version__)


def run_api() -> None:
    """Entry point for the transcriber-api console script."""
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
