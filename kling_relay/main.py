"""Kling Video Generation relay - FastAPI application."""

import logging
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from kling_relay.config import settings
from kling_relay.api.v1.router import v1_router, root_router
from kling_relay.api.v1 import generate as generate_api
from kling_relay.clients.kling import KlingClient
from kling_relay.db.record_store import build_record_store
from kling_relay.jobs.background import BackgroundDispatcher
from kling_relay.jobs.lifecycle import JobLifecycle


def configure_logging(level: str = settings.log_level) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown logic."""
    configure_logging()

    print("=" * 60)
    print("Kling Video Generation Server")
    print("=" * 60)
    print(f"Port: {settings.port}")
    print(f"Record store: {settings.record_store_backend} (table {settings.record_table})")
    print(f"Time: {datetime.utcnow().isoformat()}")

    store = build_record_store(settings)
    client = KlingClient.from_settings(settings)
    lifecycle = JobLifecycle(store, client, settings=settings)

    dispatcher = BackgroundDispatcher(run_fn=lifecycle.run)
    await dispatcher.start()
    generate_api.set_dispatcher(dispatcher)
    print("Status: ONLINE")
    print("=" * 60)

    yield

    print("Shutting down Kling Video Generation Server")
    generate_api.set_dispatcher(None)
    await dispatcher.stop()
    await client.aclose()
    await store.aclose()


app = FastAPI(
    title="Kling Video Generation",
    description="Turns record triggers into Kling image-to-video jobs and tracks them to completion",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

# Mount routers
app.include_router(root_router)  # GET /, GET /health, POST /generate-video
app.include_router(v1_router)  # All /api/v1/* endpoints


def run() -> None:
    """Console entry point."""
    import uvicorn

    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())
