"""Application configuration via environment variables."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from environment variables or .env file."""
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # Application
    app_name: str = "EventSnap"
    debug: bool = False
    secret_key: str = "change-me-in-production"

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    allowed_origins: str = "*"  # Comma-separated origins, or "*" for all
    public_origin: str = "http://localhost:5173"  # Used for share/upload links

    # Database
    database_url: str = "sqlite:///./eventsnap.db"

    # AWS
    aws_region: str = "us-east-1"
    aws_access_key_id: str = ""
    aws_secret_access_key: str = ""
    s3_bucket_name: str = ""
    s3_list_max_keys: int = 1000

    # Face matching
    face_similarity_threshold: float = 80.0  # Passed to CompareFaces
    match_acceptance_threshold: float = 70.0  # Applied to returned similarity
    face_quality_filter: str = "HIGH"
    match_batch_size: int = 10
    match_batch_delay_seconds: float = 1.0

    # Uploads / downloads
    max_upload_bytes: int = 50 * 1024 * 1024
    event_id_max_attempts: int = 10
    download_delay_seconds: float = 0.5

    # Google sign-in
    google_client_id: str = ""

    # Background jobs
    counter_refresh_minutes: int = 30


settings = Settings()
