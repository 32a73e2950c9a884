"""Supabase-backed catalog record repository."""

import asyncio
from collections.abc import AsyncIterator
from dataclasses import dataclass
from datetime import UTC, datetime
from uuid import UUID

import httpx
from postgrest.exceptions import APIError
from supabase import Client

from vintage_catalog.domain.errors import RecordStoreError
from vintage_catalog.domain.records import PLACEHOLDER_STATUS, CatalogRecord
from vintage_catalog.services.ingestion import CatalogRepository

_CORE_COLUMNS = {"id", "owner_id", "status", "ingest_state", "images", "image"}

# PostgREST rejections and transport failures both surface from execute().
_STORE_ERRORS = (APIError, httpx.HTTPError)


@dataclass
class SupabaseCatalogRepository(CatalogRepository):
    """Supabase implementation for catalog records."""

    client: Client
    table: str = "catalog_items"
    poll_interval_seconds: float = 5.0

    def create(self, owner_id: str) -> UUID:
        """Create a placeholder row and return its id."""
        try:
            response = (
                self.client.table(self.table)
                .insert(
                    {
                        "owner_id": owner_id,
                        "status": PLACEHOLDER_STATUS,
                        "ingest_state": "pending",
                        "images": [],
                    }
                )
                .execute()
            )
        except _STORE_ERRORS as exc:
            raise RecordStoreError(
                f"Failed to create record: {_describe(exc)}"
            ) from exc
        if not response.data:
            raise RecordStoreError("Failed to create record")
        return UUID(response.data[0]["id"])

    def update(self, record_id: UUID, fields: dict[str, object]) -> None:
        """Apply a partial update to a record."""
        payload = {**fields, "updated_at": datetime.now(tz=UTC).isoformat()}
        try:
            self.client.table(self.table).update(payload).eq(
                "id", str(record_id)
            ).execute()
        except _STORE_ERRORS as exc:
            raise RecordStoreError(
                f"Failed to update record {record_id}: {_describe(exc)}"
            ) from exc

    def delete(self, record_id: UUID) -> None:
        """Delete a record row."""
        try:
            self.client.table(self.table).delete().eq("id", str(record_id)).execute()
        except _STORE_ERRORS as exc:
            raise RecordStoreError(
                f"Failed to delete record {record_id}: {_describe(exc)}"
            ) from exc

    def get(self, record_id: UUID) -> CatalogRecord | None:
        """Return a record by id, if present."""
        try:
            response = (
                self.client.table(self.table)
                .select("*")
                .eq("id", str(record_id))
                .limit(1)
                .execute()
            )
        except _STORE_ERRORS as exc:
            raise RecordStoreError(
                f"Failed to read record {record_id}: {_describe(exc)}"
            ) from exc
        if not response.data:
            return None
        return _parse_record(response.data[0])

    def list_records(self, owner_id: str) -> list[CatalogRecord]:
        """Return all records for an owner, newest first."""
        try:
            response = (
                self.client.table(self.table)
                .select("*")
                .eq("owner_id", owner_id)
                .order("created_at", desc=True)
                .execute()
            )
        except _STORE_ERRORS as exc:
            raise RecordStoreError(
                f"Failed to list records of {owner_id}: {_describe(exc)}"
            ) from exc
        return [_parse_record(row) for row in response.data or []]

    async def subscribe(self, owner_id: str) -> AsyncIterator[list[CatalogRecord]]:
        """Poll the owner's records and yield each changed snapshot."""
        previous: list[CatalogRecord] | None = None
        while True:
            records = await asyncio.to_thread(self.list_records, owner_id)
            if records != previous:
                previous = records
                yield records
            await asyncio.sleep(self.poll_interval_seconds)


def _describe(exc: Exception) -> str:
    if isinstance(exc, APIError) and exc.message:
        return exc.message
    return str(exc) or type(exc).__name__


def _parse_record(row: dict[str, object]) -> CatalogRecord:
    return CatalogRecord(
        id=UUID(str(row["id"])),
        owner_id=str(row["owner_id"]),
        status=str(row.get("status") or PLACEHOLDER_STATUS),
        ingest_state=str(row.get("ingest_state") or "pending"),
        images=list(row.get("images") or []),
        image=row.get("image"),
        fields={key: value for key, value in row.items() if key not in _CORE_COLUMNS},
    )
