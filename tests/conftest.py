"""Test configuration and fixtures for kling_relay.

Provides an in-memory record store, a scripted fake of the Kling HTTP API
(served through httpx.MockTransport), and an instant sleep so the 80 x 5s
poll loop runs in microseconds.
"""

import json
from typing import Any, Callable, Dict, List, Optional

import httpx
import pytest
import pytest_asyncio

from kling_relay.clients.kling import KlingClient
from kling_relay.config import Settings
from kling_relay.db.record_store import RecordStore
from kling_relay.errors import NotFoundError, StoreError
from kling_relay.jobs.lifecycle import JobLifecycle

API_BASE = "https://kling.test/api/v3"
MODEL_PATH = "kwaivgi/kling-v2.5-turbo-pro/image-to-video"
SUBMIT_URL = f"{API_BASE}/{MODEL_PATH}"
VIDEO_URL = "https://cdn.kling.test/outputs/video.mp4"


class FakeRecordStore(RecordStore):
    """Dict-backed store that records every update in order."""

    def __init__(self, records: Optional[Dict[str, Dict[str, Any]]] = None):
        self.records = {k: dict(v) for k, v in (records or {}).items()}
        self.updates: List[Dict[str, Any]] = []
        self.fail_updates_when: Callable[[Dict[str, Any]], bool] = lambda fields: False

    async def get(self, record_id: str) -> Dict[str, Any]:
        if record_id not in self.records:
            raise NotFoundError(f"Record {record_id} not found")
        return dict(self.records[record_id])

    async def update(self, record_id: str, fields: Dict[str, Any]) -> None:
        if self.fail_updates_when(fields):
            raise StoreError("store unavailable")
        self.updates.append(dict(fields))
        self.records.setdefault(record_id, {}).update(fields)

    def statuses(self) -> List[str]:
        return [u["status"] for u in self.updates if "status" in u]


class FakeKlingAPI:
    """Scripted generation service.

    ``poll_responses`` is consumed one entry per status check. Each entry is
    either a remote status string, an ``httpx.Response``, or an exception
    instance to raise. The last entry repeats once the script runs out.
    """

    def __init__(self):
        self.submit_response: httpx.Response = httpx.Response(
            200, json={"code": 200, "data": {"id": "abcdef1234567890", "status": "created"}}
        )
        self.poll_responses: List[Any] = ["processing"]
        self.outputs: List[str] = [VIDEO_URL]
        self.error: Optional[str] = None
        self.artifact_response: httpx.Response = httpx.Response(
            200, headers={"content-length": str(3 * 1024 * 1024)}
        )
        self.submit_bodies: List[Dict[str, Any]] = []
        self.poll_calls = 0
        self.artifact_calls = 0
        self.auth_headers: List[str] = []

    def _status_response(self, status: str) -> httpx.Response:
        data: Dict[str, Any] = {"id": "abcdef1234567890", "status": status}
        if status == "completed":
            data["outputs"] = self.outputs
        if status == "failed" and self.error is not None:
            data["error"] = self.error
        return httpx.Response(200, json={"code": 200, "data": data})

    def handler(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        if url == SUBMIT_URL and request.method == "POST":
            self.auth_headers.append(request.headers.get("authorization", ""))
            self.submit_bodies.append(json.loads(request.content))
            return _fresh(self.submit_response)
        if url.startswith(f"{API_BASE}/predictions/") and url.endswith("/result"):
            self.auth_headers.append(request.headers.get("authorization", ""))
            index = min(self.poll_calls, len(self.poll_responses) - 1)
            self.poll_calls += 1
            entry = self.poll_responses[index]
            if isinstance(entry, Exception):
                raise entry
            if isinstance(entry, httpx.Response):
                return _fresh(entry)
            return self._status_response(entry)
        if url in self.outputs:
            self.artifact_calls += 1
            return _fresh(self.artifact_response)
        return httpx.Response(404, text=f"unexpected {request.method} {url}")


def _fresh(response: httpx.Response) -> httpx.Response:
    """Copy a canned response so it can be served more than once."""
    return httpx.Response(
        response.status_code, headers=response.headers, content=response.content
    )


class InstantSleep:
    """Replacement for asyncio.sleep that only counts."""

    def __init__(self):
        self.calls: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        _env_file=None,
        kling_api_key="test-kling-key",
        kling_api_base=API_BASE,
        kling_model_path=MODEL_PATH,
    )


@pytest.fixture
def valid_fields() -> Dict[str, Any]:
    return {
        "input_image": [{"url": "https://images.test/cat.png", "filename": "cat.png"}],
        "custom_prompt": "A cat surfing a wave at sunset",
        "preset_prompt": "Slow cinematic zoom",
        "duration": 10,
        "aspect_ratio": "16:9",
    }


@pytest.fixture
def store(valid_fields) -> FakeRecordStore:
    return FakeRecordStore({"rec123": valid_fields})


@pytest.fixture
def kling_api() -> FakeKlingAPI:
    return FakeKlingAPI()


@pytest_asyncio.fixture
async def kling_client(kling_api: FakeKlingAPI, test_settings: Settings):
    http = httpx.AsyncClient(transport=httpx.MockTransport(kling_api.handler))
    client = KlingClient(
        api_key=test_settings.kling_api_key,
        api_base=test_settings.kling_api_base,
        model_path=test_settings.kling_model_path,
        client=http,
    )
    yield client
    await http.aclose()


@pytest.fixture
def instant_sleep() -> InstantSleep:
    return InstantSleep()


@pytest.fixture
def lifecycle(store, kling_client, test_settings, instant_sleep) -> JobLifecycle:
    return JobLifecycle(store, kling_client, settings=test_settings, sleep=instant_sleep)
