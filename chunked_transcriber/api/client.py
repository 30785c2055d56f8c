"""Async HTTP client for the Gemini generateContent API.

WHY: Each chunk is one structured-output request to Gemini. This module
hides the HTTP details (auth header, endpoint path, body shape, error
mapping) behind the BaseBackend interface the orchestrator expects.

HOW: Uses httpx.AsyncClient for non-blocking HTTP. GeminiBackend is an
async context manager. Enter it to get an authenticated client, exit to
close the connection pool. submit() builds the prompt and body, POSTs
to /models/{model}:generateContent, and returns the response text.

RULES:
- Always use the async context manager (async with GeminiBackend(...) as backend:)
- api_key defaults to load_api_key() from .env, checked lazily by check_credentials()
- HTTP 401/403 raise CredentialError (fatal, not retried)
- Other non-2xx responses and network errors raise GeminiAPIError / ChunkTransportError
- A 200 body that is not JSON or not the generateContent shape raises ChunkTransportError
- A MAX_TOKENS finish reason is logged; the truncated text is still returned
"""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from chunked_transcriber.api.base import BaseBackend, ChunkTransportError
from chunked_transcriber.api.models import GenerateContentResponse, build_request_body
from chunked_transcriber.config import (
    GEMINI_BASE_URL,
    GEMINI_MODEL,
    MAX_OUTPUT_TOKENS,
    REQUEST_TIMEOUT_S,
    TEMPERATURE,
    CredentialError,
    load_api_key,
)
from chunked_transcriber.core.ir import AudioChunk
from chunked_transcriber.core.prompt import build_prompt

logger = logging.getLogger(__name__)


class GeminiAPIError(ChunkTransportError):
    """Raised when the Gemini API returns an error response.

    WHY: Callers need a typed exception to tell API errors from network
    errors in logs, while the orchestrator retries both the same way.

    RULES:
    - Always include status_code and message
    - message is the response body text or a summary
    """

    def __init__(self, status_code: int, message: str) -> None:
        self.status_code = status_code
        self.message = message
        super().__init__("Gemini API error {}: {}".format(status_code, message))


class GeminiBackend(BaseBackend):
    """Gemini transcription backend.

    RULES:
    - Use as: async with GeminiBackend() as backend: ...
    - base_url defaults to GEMINI_BASE_URL from config
    - model defaults to GEMINI_MODEL from config
    - transport is for tests (httpx.MockTransport)
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        model: Optional[str] = None,
        temperature: float = TEMPERATURE,
        max_output_tokens: int = MAX_OUTPUT_TOKENS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._api_key = api_key
        self._base_url = (base_url or GEMINI_BASE_URL).rstrip("/")
        self._model = model or GEMINI_MODEL
        self._temperature = temperature
        self._max_output_tokens = max_output_tokens
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def model(self) -> str:
        return self._model

    def check_credentials(self) -> None:
        if not self._api_key:
            self._api_key = load_api_key()

    async def __aenter__(self) -> GeminiBackend:
        self.check_credentials()
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers={"x-goog-api-key": self._api_key or ""},
            timeout=httpx.Timeout(REQUEST_TIMEOUT_S, connect=30.0),
            transport=self._transport,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        if self._client:
            await self._client.aclose()
            self._client = None

    def _ensure_client(self) -> httpx.AsyncClient:
        """Return the active httpx client, raising if not in context manager."""
        if self._client is None:
            raise RuntimeError(
                "GeminiBackend must be used as an async context manager: "
                "async with GeminiBackend() as backend: ..."
            )
        return self._client

    async def submit(
        self,
        chunk: AudioChunk,
        context: Optional[str],
        chunk_total: Optional[int] = None,
    ) -> str:
        """POST one chunk to generateContent and return the response text."""
        client = self._ensure_client()
        prompt = build_prompt(chunk.sequence_index + 1, context, chunk_total)
        body = build_request_body(
            chunk,
            prompt,
            temperature=self._temperature,
            max_output_tokens=self._max_output_tokens,
        )

        try:
            resp = await client.post("/models/{}:generateContent".format(self._model), json=body)
        except httpx.HTTPError as e:
            raise ChunkTransportError("Request to Gemini failed: {}".format(e)) from e

        if resp.status_code in (401, 403):
            raise CredentialError(
                "Gemini rejected the API key ({}): {}".format(resp.status_code, resp.text)
            )
        if resp.status_code != 200:
            raise GeminiAPIError(resp.status_code, resp.text)

        try:
            payload = resp.json()
        except ValueError as e:
            raise ChunkTransportError("Gemini returned a non-JSON body") from e
        try:
            parsed = GenerateContentResponse.from_dict(payload)
        except TypeError as e:
            raise ChunkTransportError("Gemini returned an unexpected body: {}".format(e)) from e

        if parsed.finish_reason == "MAX_TOKENS":
            logger.info("Chunk %d output hit the token limit", chunk.sequence_index)
        return parsed.text or "[]"
