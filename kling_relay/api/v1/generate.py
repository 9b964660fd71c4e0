"""Trigger endpoint: acknowledge immediately, generate in the background."""

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel

router = APIRouter()
logger = logging.getLogger(__name__)

# Set by main.py during lifespan
_dispatcher = None


def set_dispatcher(dispatcher):
    global _dispatcher
    _dispatcher = dispatcher


def get_dispatcher():
    return _dispatcher


class GenerateVideoRequest(BaseModel):
    recordId: Optional[str] = None


class GenerateVideoResponse(BaseModel):
    success: bool
    message: str
    recordId: str


@router.post("/generate-video", response_model=GenerateVideoResponse)
async def generate_video(request: Optional[GenerateVideoRequest] = None):
    """Start video generation for an Airtable/Supabase record.

    The response only acknowledges the hand-off. The outcome is written to
    the record's ``status`` and ``error_log`` fields.
    """
    record_id = (request.recordId or "").strip() if request else ""
    if not record_id:
        return JSONResponse(status_code=400, content={"error": "recordId is required"})

    if _dispatcher is None:
        raise HTTPException(status_code=503, detail="Job dispatcher not initialized")

    started = await _dispatcher.submit(record_id)
    if not started:
        raise HTTPException(
            status_code=409,
            detail=f"Video generation already running for record {record_id}",
        )

    logger.info("Video generation started for record %s", record_id)
    return GenerateVideoResponse(
        success=True,
        message="Video generation started",
        recordId=record_id,
    )
