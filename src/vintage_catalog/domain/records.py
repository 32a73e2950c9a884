"""Domain models for persisted catalog records."""

from dataclasses import dataclass, field
from uuid import UUID

PLACEHOLDER_STATUS = "undetermined"


@dataclass(frozen=True)
class AssetRef:
    """Reference to an uploaded photo."""

    path: str
    url: str
    index: int


@dataclass(frozen=True)
class CatalogRecord:
    """Catalog item as stored in the record store."""

    id: UUID
    owner_id: str
    status: str
    ingest_state: str
    images: list[str] = field(default_factory=list)
    image: str | None = None
    fields: dict[str, object] = field(default_factory=dict)
