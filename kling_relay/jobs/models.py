"""Data models for the video generation job lifecycle."""

from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field, field_validator


class RecordStatus(str, Enum):
    """Values written to the record's ``status`` field."""
    GENERATING = "Generating"
    COMPLETED = "Completed"
    COMPLETED_URL_ONLY = "Completed (URL only)"
    FAILED = "Failed"

    @property
    def is_terminal(self) -> bool:
        return self is not RecordStatus.GENERATING


class RemoteState(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class RemoteJob(BaseModel):
    """Status payload returned by the generation service for one job.

    ``status`` is kept verbatim. Anything other than ``completed`` or
    ``failed`` maps to ``RemoteState.RUNNING`` so new upstream values
    keep the job polling.
    """
    id: Optional[str] = None
    status: str = ""
    outputs: List[str] = Field(default_factory=list)
    error: Optional[str] = None

    @field_validator("outputs", mode="before")
    @classmethod
    def _null_outputs(cls, v):
        return v or []

    @property
    def state(self) -> RemoteState:
        if self.status == RemoteState.COMPLETED.value:
            return RemoteState.COMPLETED
        if self.status == RemoteState.FAILED.value:
            return RemoteState.FAILED
        return RemoteState.RUNNING


class SubmitPayload(BaseModel):
    """Body sent to the image-to-video endpoint."""
    duration: str
    guidance_scale: float = 0.5
    image: str
    prompt: str


class JobRequest(BaseModel):
    """Generation inputs read from a record at lookup time."""
    record_id: str
    input_image: Optional[str] = None
    prompt: Optional[str] = None
    duration: int = 5
    aspect_ratio: str = "auto"

    @classmethod
    def from_fields(
        cls,
        record_id: str,
        fields: Dict[str, Any],
        default_duration: int = 5,
        default_aspect_ratio: str = "auto",
    ) -> "JobRequest":
        prompt = fields.get("custom_prompt") or fields.get("preset_prompt") or None
        duration = fields.get("duration") or default_duration
        return cls(
            record_id=record_id,
            input_image=_first_attachment_url(fields.get("input_image")),
            prompt=prompt,
            duration=int(duration),
            aspect_ratio=fields.get("aspect_ratio") or default_aspect_ratio,
        )

    def to_payload(self, guidance_scale: float = 0.5) -> SubmitPayload:
        return SubmitPayload(
            duration=str(self.duration),
            guidance_scale=guidance_scale,
            image=self.input_image or "",
            prompt=self.prompt or "",
        )

    def output_filename(self, job_id: str) -> str:
        """e.g. ``video_5s_16x9_abcd1234.mp4``"""
        ratio = self.aspect_ratio.replace(":", "x", 1)
        return f"video_{self.duration}s_{ratio}_{job_id[:8]}.mp4"


def _first_attachment_url(value: Any) -> Optional[str]:
    """Attachment fields arrive as a list of ``{url: ...}`` objects.

    Plain strings and single objects are accepted too (Supabase text/json columns).
    """
    if not value:
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, list):
        value = value[0]
    if isinstance(value, dict):
        return value.get("url") or None
    if isinstance(value, str):
        return value or None
    return None
