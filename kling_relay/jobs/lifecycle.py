"""Video generation job lifecycle.

One run takes a record id through:

    fetch record -> validate -> submit -> poll -> finalize

and writes exactly one terminal status back to the record. Progress goes to
``error_log``, which is overwritten on every update.
"""

import asyncio
import logging
from enum import IntEnum
from typing import Any, Awaitable, Callable, Dict, Optional

from kling_relay.clients.kling import KlingClient
from kling_relay.config import Settings, settings as default_settings
from kling_relay.db.record_store import RecordStore
from kling_relay.errors import (
    ArtifactFetchError,
    GenerationTimeoutError,
    JobValidationError,
    LifecycleFailure,
    PollTransientError,
    RemoteFailure,
)
from kling_relay.jobs.models import JobRequest, RecordStatus, RemoteState

logger = logging.getLogger(__name__)

SUCCESS_MESSAGE = "✅ Video generation completed successfully!"
URL_ONLY_MESSAGE = "Video ready but Airtable upload failed. Download from video_url field."

Sleep = Callable[[float], Awaitable[Any]]


class Stage(IntEnum):
    """Lifecycle stages, in the only order they may be entered."""
    FETCHED = 1
    VALIDATED = 2
    SUBMITTED = 3
    POLLING = 4
    RESOLVED = 5
    FINALIZED = 6


class LifecycleStateError(RuntimeError):
    """Raised on an attempt to move a lifecycle backwards or write after a terminal status."""


class _RecordWriter:
    """Serializes the writes of one run and enforces stage ordering."""

    def __init__(self, store: RecordStore, record_id: str):
        self._store = store
        self._record_id = record_id
        self.stage = Stage.FETCHED
        self.terminal: Optional[RecordStatus] = None

    def advance(self, stage: Stage) -> None:
        if stage < self.stage:
            raise LifecycleStateError(f"Cannot move from {self.stage.name} back to {stage.name}")
        self.stage = stage

    async def write(self, fields: Dict[str, Any]) -> None:
        if self.terminal is not None:
            raise LifecycleStateError(
                f"Record {self._record_id} already terminal ({self.terminal.value})"
            )
        status = fields.get("status")
        await self._store.update(self._record_id, fields)
        if status is not None and RecordStatus(status).is_terminal:
            self.terminal = RecordStatus(status)
            self.stage = Stage.FINALIZED

    async def finish(self, status: RecordStatus, **fields: Any) -> None:
        self.advance(Stage.RESOLVED)
        await self.write({"status": status.value, **fields})


class JobLifecycle:
    """Runs the full life of one generation job for a record."""

    def __init__(
        self,
        store: RecordStore,
        client: KlingClient,
        settings: Settings = default_settings,
        sleep: Sleep = asyncio.sleep,
    ):
        self._store = store
        self._client = client
        self._settings = settings
        self._sleep = sleep

    async def run(self, record_id: str) -> Optional[RecordStatus]:
        """Execute the lifecycle for ``record_id``.

        Returns the terminal status written, or None if even the error write
        failed. NotFoundError from the initial read propagates.
        """
        logger.info("Starting video generation for record: %s", record_id)
        fields = await self._store.get(record_id)

        writer = _RecordWriter(self._store, record_id)
        try:
            await self._execute(record_id, fields, writer)
            return writer.terminal
        except LifecycleFailure as e:
            logger.error("Job for %s failed: %s", record_id, e.error_log)
            error_log = e.error_log
        except Exception as e:
            logger.exception("Unexpected error for record %s", record_id)
            error_log = f"Server error: {e}"

        if writer.terminal is None:
            try:
                await writer.finish(RecordStatus.FAILED, error_log=error_log)
            except Exception as update_error:
                logger.error("Failed to update record %s with error: %s", record_id, update_error)
        return writer.terminal

    async def _execute(self, record_id: str, fields: Dict[str, Any], writer: _RecordWriter) -> None:
        request = JobRequest.from_fields(
            record_id,
            fields,
            default_duration=self._settings.default_duration,
            default_aspect_ratio=self._settings.default_aspect_ratio,
        )
        logger.info(
            "Record details: duration=%s aspect_ratio=%s prompt=%r",
            request.duration,
            request.aspect_ratio,
            (request.prompt or "")[:100],
        )

        self._validate(request)
        writer.advance(Stage.VALIDATED)

        await writer.write({
            "status": RecordStatus.GENERATING.value,
            "error_log": "Submitting job to Kling API...",
        })
        job_id = await self._client.submit(
            request.to_payload(guidance_scale=self._settings.guidance_scale)
        )
        logger.info("Job submitted for %s, job id %s", record_id, job_id)
        writer.advance(Stage.SUBMITTED)
        await writer.write({
            "job_id": job_id,
            "error_log": "Job submitted. Video is generating...",
        })

        writer.advance(Stage.POLLING)
        video_url = await self._poll(job_id, writer)

        await self._finalize(request, job_id, video_url, writer)

    @staticmethod
    def _validate(request: JobRequest) -> None:
        if not request.input_image:
            raise JobValidationError("No input image found")
        if not request.prompt:
            raise JobValidationError("No prompt provided (neither custom nor preset)")

    async def _poll(self, job_id: str, writer: _RecordWriter) -> str:
        """Poll until the remote job completes, fails, or the budget runs out.

        Returns the first output URL on success.
        """
        interval = self._settings.poll_interval_seconds
        max_attempts = self._settings.max_poll_attempts
        progress_every = self._settings.progress_every_attempts

        for attempt in range(1, max_attempts + 1):
            await self._sleep(interval)
            elapsed = _whole(attempt * interval)
            logger.info("Polling attempt %d/%d (%ss elapsed)", attempt, max_attempts, elapsed)

            try:
                remote = await self._client.poll_status(job_id)
                logger.info("Current status: %s", remote.status)

                if progress_every and attempt % progress_every == 0:
                    await writer.write({
                        "error_log": f"Generating... {elapsed}s elapsed (status: {remote.status})"
                    })
            except PollTransientError as e:
                logger.warning("Polling error: %s", e)
                continue
            except Exception as e:
                # progress write failures are absorbed like a failed status check
                logger.warning("Polling error: %s: %s", type(e).__name__, e)
                continue

            if remote.state is RemoteState.COMPLETED:
                if remote.outputs:
                    logger.info("Video completed: %s", remote.outputs[0])
                    return remote.outputs[0]
                logger.warning("Job %s completed without outputs", job_id)
            elif remote.state is RemoteState.FAILED:
                raise RemoteFailure(remote.error or "Generation failed")

        budget = _whole(max_attempts * interval)
        logger.error("TIMEOUT: video not ready after %s seconds", budget)
        raise GenerationTimeoutError(budget)

    async def _finalize(
        self, request: JobRequest, job_id: str, video_url: str, writer: _RecordWriter
    ) -> None:
        try:
            size = await self._client.fetch_artifact(video_url)
        except ArtifactFetchError as e:
            logger.error("%s; saving URL only", e)
            await writer.finish(
                RecordStatus.COMPLETED_URL_ONLY,
                video_url=video_url,
                error_log=URL_ONLY_MESSAGE,
            )
            return

        if size is not None:
            logger.info("Video downloaded. Size: %.2f MB", size / 1024 / 1024)

        filename = request.output_filename(job_id)
        await writer.finish(
            RecordStatus.COMPLETED,
            output_video=[{"url": video_url, "filename": filename}],
            video_url=video_url,
            error_log=SUCCESS_MESSAGE,
        )
        logger.info("Record %s completed, filename %s", request.record_id, filename)


def _whole(seconds: float):
    return int(seconds) if float(seconds).is_integer() else seconds
