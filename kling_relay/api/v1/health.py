"""Health check endpoints."""

import platform
import sys
from datetime import datetime, timezone

from fastapi import APIRouter

from kling_relay.api.v1 import generate

router = APIRouter()

SERVICE_NAME = "Kling Video Generation"


def _status() -> dict:
    return {
        "status": "online",
        "service": SERVICE_NAME,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/")
async def root():
    """Liveness probe."""
    return _status()


@router.get("/health")
async def health_check():
    """Liveness plus in-flight job count and runtime info."""
    dispatcher = generate.get_dispatcher()
    return {
        **_status(),
        "active_jobs": dispatcher.active_count() if dispatcher else 0,
        "python_version": sys.version,
        "platform": platform.platform(),
    }
