"""Application configuration."""
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Constructed once by ``create_app()`` and handed to components explicitly.
    """

    # Database
    database_url: str = "sqlite+aiosqlite:///./prescriptions.db"

    # OpenAI (OCR provider)
    openai_api_key: str = ""
    openai_ocr_model: str = "gpt-4o-mini"

    # OCR job
    ocr_timeout_seconds: float = 30.0
    ocr_max_attempts: int = 1
    ocr_retry_delay_seconds: float = 1.0
    max_image_bytes: int = 10 * 1024 * 1024

    # Medication catalog (YAML); bundled catalog when unset
    medication_catalog_path: Optional[str] = None

    # Pharmacist queue
    queue_default_page_size: int = 20
    queue_max_page_size: int = 100

    # Client polling hints
    order_poll_interval_seconds: int = 15
    queue_poll_interval_seconds: int = 30

    # Pharmacist dashboard auth
    pharmacist_password: str = "change-me"
    session_ttl_hours: int = 12

    # Logging
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )
