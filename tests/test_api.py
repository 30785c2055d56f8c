"""Tests for the FastAPI transcription API.

WHY: Validates that the job endpoints behave correctly on happy paths,
error cases, and edge cases, and that the background runner records the
pipeline outcome on the job. Uses FastAPI TestClient for synchronous
in-process testing with the pipeline mocked.

HOW: The background task runner is patched out for endpoint tests, and
job state is manipulated directly through the store when a test needs a
completed or failed job. The runner itself is tested separately by
patching transcribe_media and _make_backend.

RULES:
- All endpoint tests use the FastAPI TestClient (synchronous)
- Gemini is never called (all external calls are mocked)
- The job store is reset before each test
"""

from __future__ import annotations

import asyncio
import io
import shutil
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from chunked_transcriber.audio.decoder import DecodeError
from chunked_transcriber.core.ir import Segment, TranscriptionResult
from chunked_transcriber.core.orchestrator import TranscriptionCancelled
from chunked_transcriber.server.app import (
    _run_transcription_pipeline,
    app,
    job_store,
)
from chunked_transcriber.server.jobs import JobStatus, JobStore


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_job_store():
    """Clear all jobs before each test to ensure isolation."""
    job_store._jobs.clear()
    yield
    for job in list(job_store._jobs.values()):
        if job.output_dir.exists():
            shutil.rmtree(job.output_dir, ignore_errors=True)
    job_store._jobs.clear()


@pytest.fixture
def client():
    """Create a TestClient with the background pipeline disabled."""
    with patch(
        "chunked_transcriber.server.app._run_transcription_sync",
        new=lambda job_id, store: None,
    ):
        yield TestClient(app)


def _make_audio_file(name: str = "test.mp3", content: bytes = b"fake audio data", mime="audio/mpeg"):
    return ("file", (name, io.BytesIO(content), mime))


def _sample_result() -> TranscriptionResult:
    return TranscriptionResult(
        segments=[
            Segment(id="seg-1", timestamp="00:00:00", speaker="Speaker 1", text="Hello there."),
            Segment(id="seg-2", timestamp="00:00:07", speaker="Speaker 2", text="Hi."),
        ],
        duration_s=250.0,
    )


# ---------------------------------------------------------------------------
# POST /transcriptions
# ---------------------------------------------------------------------------


class TestCreateTranscription:
    """Tests for POST /transcriptions endpoint."""

    def test_submit_job_returns_201(self, client):
        resp = client.post("/transcriptions", files=[_make_audio_file()])
        assert resp.status_code == 201
        body = resp.json()
        assert "id" in body
        assert body["status"] == "pending"
        assert body["filename"] == "test.mp3"

    def test_submit_job_saves_uploaded_file(self, client):
        content = b"test audio content 12345"
        resp = client.post("/transcriptions", files=[_make_audio_file(content=content)])
        job = job_store.get_job(resp.json()["id"])
        assert job is not None
        assert job.input_path.read_bytes() == content
        assert job.mime_type == "audio/mpeg"

    def test_model_stored_in_config(self, client):
        resp = client.post(
            "/transcriptions",
            files=[_make_audio_file()],
            data={"model": "gemini-custom"},
        )
        job = job_store.get_job(resp.json()["id"])
        assert job.config["model"] == "gemini-custom"

    def test_mime_type_guessed_for_octet_stream(self, client):
        resp = client.post(
            "/transcriptions",
            files=[_make_audio_file("clip.wav", mime="application/octet-stream")],
        )
        job = job_store.get_job(resp.json()["id"])
        assert job.mime_type in ("audio/wav", "audio/x-wav")

    def test_reject_unsupported_file_type(self, client):
        resp = client.post(
            "/transcriptions",
            files=[("file", ("test.xyz", io.BytesIO(b"data"), "application/octet-stream"))],
        )
        assert resp.status_code == 400
        assert "Unsupported file type" in resp.json()["detail"]

    def test_path_traversal_filename_sanitized(self, client):
        resp = client.post(
            "/transcriptions",
            files=[_make_audio_file("../../etc/evil.mp3")],
        )
        assert resp.status_code == 201
        assert resp.json()["filename"] == "evil.mp3"

    def test_too_many_jobs_returns_429(self, client, monkeypatch):
        monkeypatch.setattr(job_store, "max_jobs", 1)
        assert client.post("/transcriptions", files=[_make_audio_file()]).status_code == 201
        resp = client.post("/transcriptions", files=[_make_audio_file()])
        assert resp.status_code == 429

    def test_background_task_scheduled(self):
        runner = MagicMock()
        with patch("chunked_transcriber.server.app._run_transcription_sync", new=runner):
            resp = TestClient(app).post("/transcriptions", files=[_make_audio_file()])
        runner.assert_called_once_with(resp.json()["id"], job_store)


# ---------------------------------------------------------------------------
# GET /transcriptions/{id}
# ---------------------------------------------------------------------------


class TestGetTranscription:
    """Tests for GET /transcriptions/{id} endpoint."""

    def test_pending_job(self, client):
        job_id = client.post("/transcriptions", files=[_make_audio_file()]).json()["id"]
        resp = client.get("/transcriptions/{}".format(job_id))
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "pending"
        assert body["transcript"] is None

    def test_progress_message_exposed(self, client):
        job_id = client.post("/transcriptions", files=[_make_audio_file()]).json()["id"]
        job_store.update_job(job_id, status=JobStatus.PROCESSING, message="Transcribing part 2 of 5...")
        body = client.get("/transcriptions/{}".format(job_id)).json()
        assert body["status"] == "processing"
        assert body["message"] == "Transcribing part 2 of 5..."

    def test_completed_job_includes_transcript(self, client):
        job_id = client.post("/transcriptions", files=[_make_audio_file()]).json()["id"]
        job_store.update_job(job_id, status=JobStatus.COMPLETED, result=_sample_result())
        body = client.get("/transcriptions/{}".format(job_id)).json()
        assert body["status"] == "completed"
        transcript = body["transcript"]
        assert transcript["duration"] == "04:10"
        assert transcript["duration_s"] == 250.0
        assert [s["speaker"] for s in transcript["segments"]] == ["Speaker 1", "Speaker 2"]
        assert transcript["segments"][0]["is_section_header"] is False

    def test_failed_job_includes_error(self, client):
        job_id = client.post("/transcriptions", files=[_make_audio_file()]).json()["id"]
        job_store.update_job(job_id, status=JobStatus.ERROR, error="Failed to decode audio.")
        body = client.get("/transcriptions/{}".format(job_id)).json()
        assert body["status"] == "error"
        assert body["error"] == "Failed to decode audio."
        assert body["transcript"] is None

    def test_missing_job_returns_404(self, client):
        resp = client.get("/transcriptions/nope")
        assert resp.status_code == 404
        assert "Job not found" in resp.json()["detail"]


# ---------------------------------------------------------------------------
# GET /transcriptions
# ---------------------------------------------------------------------------


class TestListTranscriptions:
    """Tests for GET /transcriptions endpoint."""

    def test_empty(self, client):
        resp = client.get("/transcriptions")
        assert resp.status_code == 200
        assert resp.json() == []

    def test_lists_jobs_oldest_first(self, client):
        first = client.post("/transcriptions", files=[_make_audio_file("a.mp3")]).json()["id"]
        second = client.post("/transcriptions", files=[_make_audio_file("b.mp3")]).json()["id"]
        job_store.update_job(first, status=JobStatus.COMPLETED, result=_sample_result())

        body = client.get("/transcriptions").json()
        assert [j["id"] for j in body] == [first, second]
        assert body[0]["status"] == "completed"
        assert body[0]["transcript"]["duration"] == "04:10"
        assert body[1]["status"] == "pending"

    def test_deleted_job_not_listed(self, client):
        job_id = client.post("/transcriptions", files=[_make_audio_file()]).json()["id"]
        client.delete("/transcriptions/{}".format(job_id))
        assert client.get("/transcriptions").json() == []


# ---------------------------------------------------------------------------
# DELETE /transcriptions/{id}
# ---------------------------------------------------------------------------


class TestDeleteTranscription:
    """Tests for DELETE /transcriptions/{id} endpoint."""

    def test_delete_returns_204(self, client):
        job_id = client.post("/transcriptions", files=[_make_audio_file()]).json()["id"]
        output_dir = job_store.get_job(job_id).output_dir
        resp = client.delete("/transcriptions/{}".format(job_id))
        assert resp.status_code == 204
        assert job_store.get_job(job_id) is None
        assert not output_dir.exists()

    def test_delete_missing_returns_404(self, client):
        assert client.delete("/transcriptions/nope").status_code == 404


# ---------------------------------------------------------------------------
# GET /health
# ---------------------------------------------------------------------------


class TestHealth:
    def test_health(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "ok"


# ---------------------------------------------------------------------------
# Background pipeline runner
# ---------------------------------------------------------------------------


def _fake_backend():
    backend = MagicMock()
    backend.__aenter__ = AsyncMock(return_value=backend)
    backend.__aexit__ = AsyncMock(return_value=None)
    return backend


def _store_with_job(tmp_content=b"audio"):
    store = JobStore()
    job = store.create_job("talk.mp3", mime_type="audio/mpeg", config={"model": "gemini-x"})
    job.input_path.write_bytes(tmp_content)
    return store, job


class TestPipelineRunner:
    """_run_transcription_pipeline() records the outcome on the job."""

    def test_success_marks_completed(self):
        store, job = _store_with_job()
        result = _sample_result()

        async def fake_transcribe(data, backend, mime_type=None, on_status=None,
                                  on_phase=None, should_cancel=None):
            on_phase("chunking")
            assert store.get_job(job.id).status == JobStatus.CHUNKING
            on_phase("processing")
            on_status("Transcribing part 1 of 1...")
            assert store.get_job(job.id).message == "Transcribing part 1 of 1..."
            assert should_cancel() is False
            assert data == b"audio"
            assert mime_type == "audio/mpeg"
            return result

        with patch("chunked_transcriber.server.app._make_backend", return_value=_fake_backend()) as mk, \
                patch("chunked_transcriber.server.app.transcribe_media", new=fake_transcribe):
            asyncio.run(_run_transcription_pipeline(job.id, store))

        mk.assert_called_once_with("gemini-x")
        updated = store.get_job(job.id)
        assert updated.status == JobStatus.COMPLETED
        assert updated.result is result
        assert updated.completed_at is not None
        store.delete_job(job.id)

    def test_fatal_error_marks_error(self):
        store, job = _store_with_job()
        with patch("chunked_transcriber.server.app._make_backend", return_value=_fake_backend()), \
                patch(
                    "chunked_transcriber.server.app.transcribe_media",
                    new=AsyncMock(side_effect=DecodeError("Failed to decode audio.")),
                ):
            asyncio.run(_run_transcription_pipeline(job.id, store))

        updated = store.get_job(job.id)
        assert updated.status == JobStatus.ERROR
        assert updated.error == "Failed to decode audio."
        store.delete_job(job.id)

    def test_cancelled_job_left_deleted(self):
        store, job = _store_with_job()

        async def cancelled(*args, **kwargs):
            store.delete_job(job.id)
            assert kwargs["should_cancel"]() is True
            raise TranscriptionCancelled("stopped")

        with patch("chunked_transcriber.server.app._make_backend", return_value=_fake_backend()), \
                patch("chunked_transcriber.server.app.transcribe_media", new=cancelled):
            asyncio.run(_run_transcription_pipeline(job.id, store))

        assert store.get_job(job.id) is None

    def test_missing_job_is_noop(self):
        store = JobStore()
        with patch("chunked_transcriber.server.app.transcribe_media") as mock_run:
            asyncio.run(_run_transcription_pipeline("gone", store))
        mock_run.assert_not_called()
