"""In-memory job store with TTL cleanup.

WHY: The HTTP API needs to track a transcription through its lifecycle
(pending → chunking → processing → completed | error). Runs take minutes,
so the API returns a job ID immediately and processes work in the
background. An in-memory store is sufficient for a single-user tool with
no persistence requirements.

HOW: Three components work together:
  JobStatus  — enum of valid job states
  Job        — dataclass holding job metadata, status, progress, result
  JobStore   — thread-safe dict-based store with create/update/get/list/delete
               and TTL cleanup

RULES:
- All store mutations are protected by threading.Lock for thread safety
- Each job gets a dedicated temp directory for the uploaded file
- Deleting a running job is how it gets cancelled: the runner polls
  is_active() between chunks
- Job IDs are UUID4 hex strings generated at creation time
- Default TTL is 1 hour (3600 seconds)
"""

from __future__ import annotations

import enum
import logging
import shutil
import tempfile
import threading
import time
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from chunked_transcriber.core.ir import TranscriptionResult

logger = logging.getLogger(__name__)

# Default time-to-live for completed/failed jobs (seconds)
DEFAULT_TTL_SECONDS = 3600


class JobStatus(str, enum.Enum):
    """Valid states for a transcription job.

    RULES:
    - pending: job created, not yet started
    - chunking: source being decoded and split
    - processing: chunks being transcribed
    - completed: result available
    - error: fatal failure (decode, credential, unexpected)
    """

    PENDING = "pending"
    CHUNKING = "chunking"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"


TERMINAL_STATUSES = (JobStatus.COMPLETED, JobStatus.ERROR)


@dataclass
class Job:
    """Metadata and state for a single transcription job.

    RULES:
    - message: latest progress message from the pipeline
    - result: set only when status is COMPLETED
    - error: set only when status is ERROR
    """

    id: str
    status: JobStatus
    filename: str
    output_dir: Path
    created_at: float
    updated_at: float
    mime_type: Optional[str] = None
    completed_at: Optional[float] = None
    error: Optional[str] = None
    message: Optional[str] = None
    result: Optional[TranscriptionResult] = None
    config: Dict[str, Any] = field(default_factory=dict)

    @property
    def input_path(self) -> Path:
        return self.output_dir / self.filename


class JobStore:
    """Thread-safe in-memory store for transcription jobs."""

    def __init__(
        self,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        max_jobs: int = 100,
    ) -> None:
        self._jobs: Dict[str, Job] = {}
        self._lock = threading.Lock()
        self._ttl_seconds = ttl_seconds
        self.max_jobs = max_jobs

    def create_job(
        self,
        filename: str,
        mime_type: Optional[str] = None,
        config: Optional[Dict[str, Any]] = None,
    ) -> Job:
        """Create a new job in PENDING state with a dedicated temp directory.

        RULES:
        - Raises ValueError when max_jobs is reached
        - The temp directory persists until the job is deleted or expires
        """
        with self._lock:
            if len(self._jobs) >= self.max_jobs:
                raise ValueError(
                    "Maximum number of concurrent jobs ({}) reached".format(self.max_jobs)
                )

            job_id = uuid.uuid4().hex
            now = time.time()
            output_dir = Path(tempfile.mkdtemp(prefix="transcriber_job_"))

            job = Job(
                id=job_id,
                status=JobStatus.PENDING,
                filename=filename,
                output_dir=output_dir,
                created_at=now,
                updated_at=now,
                mime_type=mime_type,
                config=config or {},
            )
            self._jobs[job_id] = job

        logger.info("Created job %s for file %s", job_id, filename)
        return job

    def get_job(self, job_id: str) -> Optional[Job]:
        """Return the live Job for job_id, or None."""
        with self._lock:
            return self._jobs.get(job_id)

    def is_active(self, job_id: str) -> bool:
        """True while the job exists (i.e. has not been deleted/cancelled)."""
        with self._lock:
            return job_id in self._jobs

    def list_jobs(self) -> List[Job]:
        """Return all jobs, oldest first."""
        with self._lock:
            return sorted(self._jobs.values(), key=lambda j: j.created_at)

    def update_job(
        self,
        job_id: str,
        status: Optional[JobStatus] = None,
        error: Optional[str] = None,
        message: Optional[str] = None,
        result: Optional[TranscriptionResult] = None,
    ) -> Optional[Job]:
        """Update a job's mutable fields.

        RULES:
        - Returns the updated Job, or None if job_id not found
        - Only non-None arguments are applied
        - completed_at is set when status becomes COMPLETED or ERROR
        """
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                return None

            now = time.time()
            if status is not None:
                job.status = status
            if error is not None:
                job.error = error
            if message is not None:
                job.message = message
            if result is not None:
                job.result = result
            job.updated_at = now

            if job.status in TERMINAL_STATUSES:
                job.completed_at = now

            return job

    def delete_job(self, job_id: str) -> bool:
        """Delete a job and clean up its temp directory.

        RULES:
        - Returns True if the job was found and deleted, False otherwise
        - A running job stops at its next chunk boundary
        """
        with self._lock:
            job = self._jobs.pop(job_id, None)

        if job is None:
            return False

        self._cleanup_output_dir(job.output_dir)
        logger.info("Deleted job %s", job_id)
        return True

    def cleanup_expired(self) -> int:
        """Remove terminal jobs whose completed_at is older than the TTL."""
        now = time.time()
        expired_jobs: List[Job] = []

        with self._lock:
            for job_id, job in list(self._jobs.items()):
                if job.status not in TERMINAL_STATUSES or job.completed_at is None:
                    continue
                if now - job.completed_at > self._ttl_seconds:
                    expired_jobs.append(self._jobs.pop(job_id))

        for job in expired_jobs:
            self._cleanup_output_dir(job.output_dir)
            logger.info("Expired job %s (completed %.0fs ago)", job.id, now - job.completed_at)

        return len(expired_jobs)

    @staticmethod
    def _cleanup_output_dir(output_dir: Path) -> None:
        if output_dir.exists():
            try:
                shutil.rmtree(output_dir)
            except OSError:
                logger.warning("Failed to clean up temp dir: %s", output_dir)
