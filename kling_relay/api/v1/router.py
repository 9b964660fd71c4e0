"""Aggregate all v1 API routers."""

from fastapi import APIRouter
from kling_relay.api.v1.health import router as health_router
from kling_relay.api.v1.generate import router as generate_router

v1_router = APIRouter(prefix="/api/v1")
v1_router.include_router(health_router, tags=["health"])
v1_router.include_router(generate_router, tags=["generate"])

# Compatibility shim: mounts /, /health and /generate-video at root,
# the paths existing Airtable automations call
root_router = APIRouter()
root_router.include_router(health_router, tags=["health"])
root_router.include_router(generate_router, tags=["generate"])
