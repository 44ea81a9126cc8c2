from functools import lru_cache
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Global SecureSign settings.
    Values are read from the environment and from a local .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Project
    project_name: str = "SecureSign API"
    api_prefix: str = "/api"
    debug: bool = False

    # Security / JWT
    secret_key: str = "changeme"
    access_token_expire_minutes: int = 60
    algorithm: str = "HS256"

    # Database
    database_url: str = "sqlite:///./dev.db"

    # S3 / MinIO storage
    s3_endpoint_url: Optional[str] = None
    s3_access_key: Optional[str] = None
    s3_secret_key: Optional[str] = None
    s3_bucket_documents: str = "securesign-documents"
    s3_region: str = "us-east-1"

    # Local storage
    securesign_storage: str = "_storage"
    max_upload_bytes: int = 20 * 1024 * 1024

    # CORS
    allowed_origins: List[str] = [
        "http://localhost:5173",
        "http://127.0.0.1:5173",
        "http://localhost:3000",
    ]

    # E-mail
    email_backend: str = "smtp"
    smtp_host: Optional[str] = None
    smtp_port: int = 587
    smtp_username: Optional[str] = None
    smtp_password: Optional[str] = None
    smtp_sender: Optional[str] = None
    smtp_starttls: bool = True
    sendgrid_api_key: Optional[str] = None

    # Public links sent to guests
    public_app_url: str = "http://localhost:5173"

    # Invitations
    invitation_ttl_days: int = 5

    # Logging
    log_dir: str = "log"

    def resolved_public_app_url(self) -> str:
        """Base URL used to build guest links in e-mails."""
        return (self.public_app_url or "").strip().rstrip("/")


@lru_cache
def get_settings() -> Settings:
    """Returns the cached settings instance."""
    return Settings()


settings = get_settings()
