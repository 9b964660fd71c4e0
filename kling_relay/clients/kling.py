"""Client for the Kling image-to-video API (hosted on WaveSpeed).

Three calls are used by the lifecycle:
  submit          — POST the generation request, returns the remote job id
  poll_status     — GET the job result envelope
  fetch_artifact  — GET the finished video URL (headers only)
"""

import logging
from typing import Optional

import httpx

from kling_relay.config import Settings
from kling_relay.errors import (
    ArtifactFetchError,
    ConfigurationError,
    PollTransientError,
    SubmissionError,
)
from kling_relay.jobs.models import RemoteJob, SubmitPayload

logger = logging.getLogger(__name__)


class KlingClient:
    """Authenticated async client for the generation service."""

    def __init__(
        self,
        api_key: str,
        api_base: str = "https://api.wavespeed.ai/api/v3",
        model_path: str = "kwaivgi/kling-v2.5-turbo-pro/image-to-video",
        client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
    ):
        if not api_key:
            raise ConfigurationError("KLING_API_KEY must be set")
        self._api_base = api_base.rstrip("/")
        self._submit_url = f"{self._api_base}/{model_path.strip('/')}"
        self._headers = {"Authorization": f"Bearer {api_key}"}
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    @classmethod
    def from_settings(cls, settings: Settings) -> "KlingClient":
        return cls(
            api_key=settings.kling_api_key,
            api_base=settings.kling_api_base,
            model_path=settings.kling_model_path,
            timeout=settings.http_timeout_seconds,
        )

    async def submit(self, payload: SubmitPayload) -> str:
        """Submit a generation request and return the remote job id.

        Raises:
            SubmissionError: on any non-2xx response (body kept verbatim)
            httpx.HTTPError: on transport failures
        """
        response = await self._client.post(
            self._submit_url,
            headers=self._headers,
            json=payload.model_dump(),
        )
        if not response.is_success:
            logger.error("Submit failed: %s %s", response.status_code, response.text)
            raise SubmissionError(response.text, status_code=response.status_code)

        return response.json()["data"]["id"]

    async def poll_status(self, job_id: str) -> RemoteJob:
        """Fetch the current state of a remote job.

        Any failure here is transient from the caller's point of view.
        """
        try:
            response = await self._client.get(
                f"{self._api_base}/predictions/{job_id}/result",
                headers=self._headers,
            )
        except httpx.HTTPError as e:
            raise PollTransientError(f"{type(e).__name__}: {e}") from e

        if not response.is_success:
            raise PollTransientError(f"Status check failed: {response.status_code}")

        try:
            return RemoteJob.model_validate(response.json()["data"])
        except (ValueError, KeyError, TypeError) as e:
            raise PollTransientError(f"Malformed status payload: {e}") from e

    async def fetch_artifact(self, url: str) -> Optional[int]:
        """Check the finished video is downloadable.

        Only response headers are read. Returns the content length in bytes
        if the server reported one.
        """
        try:
            async with self._client.stream("GET", url, follow_redirects=True) as response:
                if not response.is_success:
                    raise ArtifactFetchError(f"Download failed: {response.status_code}")
                size = response.headers.get("content-length")
        except httpx.HTTPError as e:
            raise ArtifactFetchError(f"Download failed: {e}") from e

        return int(size) if size and size.isdigit() else None

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
