"""Configuration management for the document intake service."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
    )

    ENV: str = "local"
    SERVICE_NAME: str = "docintake"
    SERVICE_VERSION: str = "0.1.0"
    LOG_LEVEL: str = "INFO"

    # GCP Configuration
    GCP_PROJECT_ID: str = ""

    # Storage Configuration
    STORAGE_BACKEND: str = "local"  # "gcs" or "local"
    LOCAL_STORAGE_PATH: str = "data/buckets"
    INCOMING_BUCKET: str = "incoming-emails"
    QUARANTINE_BUCKET: str = "invalid-attachments"
    PROCESSED_BUCKET: str = "processed-attachments"
    ARCHIVE_PROCESSED: bool = True

    # Admission Configuration
    ALLOWED_EXTENSIONS: str = ""  # Comma-separated, empty = every supported extension
    ALLOWED_MIME_TYPES: str = ""  # Comma-separated, empty = every supported MIME type
    ENABLE_EXTENDED_IMAGE_FORMATS: bool = False  # HEIC/HEIF
    BLOB_NAME_GRAMMAR: str = "parenthesis"  # "parenthesis" or "hyphen"

    # Document classifier (Azure Document Intelligence REST API)
    CLASSIFIER_ENDPOINT: str = ""
    CLASSIFIER_API_KEY: str = ""
    CLASSIFIER_ID: str = ""
    CLASSIFIER_API_VERSION: str = "2024-11-30"
    CLASSIFIER_MAX_POLL_ATTEMPTS: int = 10
    CLASSIFIER_POLL_INTERVAL_SECONDS: float = 1.0
    REQUEST_TIMEOUT: int = 30  # seconds for classifier calls

    @property
    def allowed_extensions(self) -> list[str] | None:
        """Parse ALLOWED_EXTENSIONS into a list."""
        if not self.ALLOWED_EXTENSIONS:
            return None
        return [ext.strip() for ext in self.ALLOWED_EXTENSIONS.split(",") if ext.strip()]

    @property
    def allowed_mime_types(self) -> list[str] | None:
        """Parse ALLOWED_MIME_TYPES into a list."""
        if not self.ALLOWED_MIME_TYPES:
            return None
        return [mt.strip() for mt in self.ALLOWED_MIME_TYPES.split(",") if mt.strip()]

    @property
    def classifier_enabled(self) -> bool:
        """Classification runs only when the endpoint is fully configured."""
        return bool(self.CLASSIFIER_ENDPOINT and self.CLASSIFIER_API_KEY and self.CLASSIFIER_ID)


# Singleton settings instance
settings = Settings()
