"""Application configuration via environment variables."""

from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    # Server
    host: str = "0.0.0.0"
    port: int = 3000
    log_level: str = "INFO"

    # Kling (WaveSpeed) generation service
    kling_api_key: str = ""
    kling_api_base: str = "https://api.wavespeed.ai/api/v3"
    kling_model_path: str = "kwaivgi/kling-v2.5-turbo-pro/image-to-video"
    guidance_scale: float = 0.5

    # Polling
    poll_interval_seconds: float = 5.0
    max_poll_attempts: int = 80
    progress_every_attempts: int = 10

    # Request defaults
    default_duration: int = 5
    default_aspect_ratio: str = "auto"

    # None keeps the transport's own behaviour (no per-call deadline)
    http_timeout_seconds: Optional[float] = None

    # Record store
    record_store_backend: str = "airtable"  # "airtable" or "supabase"
    record_table: str = "video_generation"

    # Airtable (only when record_store_backend=airtable)
    airtable_token: str = ""
    airtable_base_id: str = ""
    airtable_api_url: str = "https://api.airtable.com/v0"

    # Supabase (only when record_store_backend=supabase)
    supabase_url: str = ""
    supabase_service_role_key: str = ""

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
