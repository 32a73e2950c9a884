"""Supabase Storage bucket for catalog photos."""

import asyncio
from dataclasses import dataclass
from uuid import UUID

from supabase import Client

from vintage_catalog.domain.errors import UploadError
from vintage_catalog.domain.records import AssetRef
from vintage_catalog.services.images import detect_mime_type
from vintage_catalog.services.ingestion import AssetStorage

_EXTENSIONS = {"image/jpeg": "jpg", "image/png": "png", "image/webp": "webp"}


@dataclass
class SupabaseAssetStorage(AssetStorage):
    """Uploads photos under `{owner}/{record}/{index}` in a storage bucket."""

    client: Client
    bucket: str

    async def upload(
        self, data: bytes, owner_id: str, record_id: UUID, index: int
    ) -> AssetRef:
        """Upload one photo and return its public reference."""
        return await asyncio.to_thread(self._upload, data, owner_id, record_id, index)

    def _upload(
        self, data: bytes, owner_id: str, record_id: UUID, index: int
    ) -> AssetRef:
        mime_type = detect_mime_type(data)
        path = f"{owner_id}/{record_id}/{index:02d}.{_EXTENSIONS[mime_type]}"
        bucket = self.client.storage.from_(self.bucket)
        try:
            bucket.upload(
                path=path,
                file=data,
                file_options={"content-type": mime_type, "upsert": "true"},
            )
            url = bucket.get_public_url(path)
        except Exception as exc:
            raise UploadError(f"Failed to upload {path}: {exc}") from exc
        return AssetRef(path=path, url=url, index=index)
