"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from supabase import create_client

from vintage_catalog.adapters.openai_analysis_client import OpenAIAnalysisClient
from vintage_catalog.adapters.supabase_asset_storage import SupabaseAssetStorage
from vintage_catalog.adapters.supabase_catalog_repository import (
    SupabaseCatalogRepository,
)
from vintage_catalog.config import Settings
from vintage_catalog.services.analysis import AnalysisService
from vintage_catalog.services.images import ImageCompressor
from vintage_catalog.services.ingestion import BatchIngestionService
from vintage_catalog.services.session_store import StagingSessionStore


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    session_store: StagingSessionStore
    analysis_service: AnalysisService
    ingestion_service: BatchIngestionService
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    supabase_client = create_client(
        resolved_settings.supabase_url, resolved_settings.supabase_service_key
    )
    catalog_repository = SupabaseCatalogRepository(
        supabase_client, table=resolved_settings.supabase_records_table
    )
    asset_storage = SupabaseAssetStorage(
        supabase_client, bucket=resolved_settings.supabase_storage_bucket
    )
    openai_client = OpenAIAnalysisClient.create(resolved_settings.openai_api_key)
    analysis_service = AnalysisService(
        client=openai_client,
        model=resolved_settings.openai_model,
        reasoning_effort=resolved_settings.openai_reasoning_effort,
        store=resolved_settings.openai_store,
        max_images=resolved_settings.analysis_max_images,
    )
    compressor = (
        ImageCompressor(
            max_dimension=resolved_settings.image_max_dimension,
            quality=resolved_settings.image_jpeg_quality,
        )
        if resolved_settings.compress_images
        else None
    )
    ingestion_service = BatchIngestionService(
        storage=asset_storage,
        records=catalog_repository,
        analysis_service=analysis_service,
        compressor=compressor,
        upload_timeout_seconds=resolved_settings.upload_timeout_seconds,
        analysis_timeout_seconds=resolved_settings.analysis_timeout_seconds,
    )

    async def close_resources() -> None:
        await openai_client.client.close()

    return AppContainer(
        settings=resolved_settings,
        session_store=StagingSessionStore(),
        analysis_service=analysis_service,
        ingestion_service=ingestion_service,
        close_resources=close_resources,
    )
