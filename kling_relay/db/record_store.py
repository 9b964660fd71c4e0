"""Record store interface and backends (Airtable REST, Supabase table).

The lifecycle only needs two calls: read a record's fields, and patch a
subset of them. Both backends use merge semantics for ``update``.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional

import httpx

from kling_relay.config import Settings
from kling_relay.errors import ConfigurationError, NotFoundError, StoreError

logger = logging.getLogger(__name__)


class RecordStore(ABC):
    """Abstract interface for the table holding generation records."""

    @abstractmethod
    async def get(self, record_id: str) -> Dict[str, Any]:
        """Return the record's fields. Raises NotFoundError if absent."""
        ...

    @abstractmethod
    async def update(self, record_id: str, fields: Dict[str, Any]) -> None:
        """Patch the given fields. Raises StoreError on failure."""
        ...

    async def aclose(self) -> None:
        return None


class AirtableRecordStore(RecordStore):
    """Records in one Airtable table, addressed by Airtable record id."""

    def __init__(
        self,
        token: str,
        base_id: str,
        table: str,
        api_url: str = "https://api.airtable.com/v0",
        client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
    ):
        if not token or not base_id:
            raise ConfigurationError("AIRTABLE_TOKEN and AIRTABLE_BASE_ID must be set")
        self._table_url = f"{api_url.rstrip('/')}/{base_id}/{table}"
        self._headers = {"Authorization": f"Bearer {token}"}
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def get(self, record_id: str) -> Dict[str, Any]:
        try:
            response = await self._client.get(
                f"{self._table_url}/{record_id}", headers=self._headers
            )
        except httpx.HTTPError as e:
            raise StoreError(f"Airtable request failed: {e}") from e

        if response.status_code == 404:
            raise NotFoundError(f"Record {record_id} not found")
        if not response.is_success:
            raise StoreError(
                f"Airtable GET {record_id} returned {response.status_code}: {response.text}"
            )
        return response.json().get("fields", {})

    async def update(self, record_id: str, fields: Dict[str, Any]) -> None:
        try:
            response = await self._client.patch(
                f"{self._table_url}/{record_id}",
                headers=self._headers,
                json={"fields": fields},
            )
        except httpx.HTTPError as e:
            raise StoreError(f"Airtable request failed: {e}") from e

        if not response.is_success:
            raise StoreError(
                f"Airtable PATCH {record_id} returned {response.status_code}: {response.text}"
            )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


class SupabaseRecordStore(RecordStore):
    """Records in a Supabase table keyed by ``id``.

    supabase-py is synchronous, so each call runs in a worker thread.
    """

    def __init__(self, client_factory: Callable[[], Any], table: str):
        self._client_factory = client_factory
        self._table = table

    async def get(self, record_id: str) -> Dict[str, Any]:
        def _select():
            return (
                self._client_factory()
                .table(self._table)
                .select("*")
                .eq("id", record_id)
                .limit(1)
                .execute()
            )

        try:
            response = await asyncio.to_thread(_select)
        except Exception as e:
            raise StoreError(f"Supabase select failed: {e}") from e

        if not response.data:
            raise NotFoundError(f"Record {record_id} not found")
        return response.data[0]

    async def update(self, record_id: str, fields: Dict[str, Any]) -> None:
        def _update():
            return (
                self._client_factory()
                .table(self._table)
                .update(fields)
                .eq("id", record_id)
                .execute()
            )

        try:
            await asyncio.to_thread(_update)
        except Exception as e:
            raise StoreError(f"Supabase update failed: {e}") from e


def build_record_store(settings: Settings) -> RecordStore:
    """Create the backend selected by RECORD_STORE_BACKEND."""
    backend = settings.record_store_backend.lower()
    if backend == "airtable":
        return AirtableRecordStore(
            token=settings.airtable_token,
            base_id=settings.airtable_base_id,
            table=settings.record_table,
            api_url=settings.airtable_api_url,
            timeout=settings.http_timeout_seconds,
        )
    if backend == "supabase":
        from kling_relay.db.supabase_client import get_supabase

        get_supabase()  # fail fast on missing credentials
        return SupabaseRecordStore(get_supabase, settings.record_table)
    raise ConfigurationError(f"Unknown record store backend: {settings.record_store_backend}")
