"""Configuration settings for the face folder search service."""
from typing import List, Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings.

    These settings are loaded from environment variables with the following precedence:
    1. Environment variables
    2. .env file
    3. Default values

    Attributes:
        MIN_CONFIDENCE: Minimum detection confidence for faces in searched photos (0-1)
        FACE_MATCHER_THRESHOLD: Maximum descriptor distance still considered a match
        BATCH_SIZE: Number of files evaluated concurrently per batch
        BATCH_DELAY_MS: Pause between two consecutive batches, in milliseconds
        LISTING_PAGE_SIZE: Number of entries requested per folder listing page
        STORAGE_PROVIDER: Remote storage backend holding the searched folders
        MAX_SESSIONS: Search sessions kept before the least recently used is evicted
        SESSION_IDLE_TIMEOUT_SECONDS: Idle time after which a search session is evicted
    """
    model_config = SettingsConfigDict(
        case_sensitive=True,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        env_prefix="",
        env_nested_delimiter="__"
    )

    # Core Settings
    PROJECT_NAME: str = "Face Folder Search"
    VERSION: str = "0.1.0"
    API_V1_STR: str = "/api/v1"
    ENVIRONMENT: str = "development"

    # CORS Settings
    ALLOWED_ORIGINS: str = "http://localhost:3000"

    @property
    def cors_origins(self) -> List[str]:
        """Get list of allowed origins."""
        return [origin.strip() for origin in self.ALLOWED_ORIGINS.split(",")]

    # Face Recognition Settings
    MIN_CONFIDENCE: float = Field(0.3, ge=0.0, le=1.0)
    FACE_MATCHER_THRESHOLD: float = Field(0.5, ge=0.0)
    MODEL_PATH: str = "buffalo_l"
    MODEL_CACHE_DIR: str = ".model_cache"
    DETECTION_SIZE: int = 640
    MAX_IMAGE_PIXELS: int = 1920 * 1080  # ~2MP (Full HD)

    # Batch Scheduling Settings
    BATCH_SIZE: int = Field(10, ge=1)
    BATCH_DELAY_MS: int = Field(1000, ge=0)
    LISTING_PAGE_SIZE: int = Field(100, ge=1, le=1000)

    @property
    def batch_delay_seconds(self) -> float:
        """Inter-batch pause expressed in seconds."""
        return self.BATCH_DELAY_MS / 1000

    # Session Settings
    MAX_SESSIONS: int = Field(100, ge=1)
    SESSION_IDLE_TIMEOUT_SECONDS: float = Field(3600.0, gt=0)

    # Storage Settings
    STORAGE_PROVIDER: Literal["google_drive", "s3"] = "google_drive"

    # Google Drive Settings
    GOOGLE_API_KEY: str = ""
    DRIVE_API_URL: str = "https://www.googleapis.com/drive/v3"
    HTTP_TIMEOUT_SECONDS: float = 60.0

    # AWS Settings
    AWS_ACCESS_KEY_ID: str = ""
    AWS_SECRET_ACCESS_KEY: str = ""
    AWS_REGION: str = "us-east-1"
    AWS_S3_BUCKET: str = ""

    # Archive Settings
    ARCHIVE_NAME: str = "images.zip"
    ARCHIVE_FOLDER: str = "images"

    # Optional settings with defaults
    LOG_LEVEL: str = "INFO"
    DEBUG: bool = False
    HOST: str = "0.0.0.0"
    PORT: int = 8000

settings = Settings()
