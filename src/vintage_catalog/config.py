"""Application configuration."""

import os

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    supabase_url: str
    supabase_service_key: str
    supabase_storage_bucket: str = "catalog-images"
    supabase_records_table: str = "catalog_items"
    api_token: str
    openai_api_key: str
    openai_model: str = "gpt-5.2"
    openai_reasoning_effort: str = "medium"
    openai_store: bool = False
    cluster_max_gap_seconds: float = 30.0
    cluster_max_group_size: int = 4
    upload_timeout_seconds: float = 30.0
    analysis_timeout_seconds: float = 120.0
    analysis_max_images: int = 4
    compress_images: bool = True
    image_max_dimension: int = 800
    image_jpeg_quality: int = 70
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )
