"""Application configuration"""

from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    # API
    API_V1_PREFIX: str = "/api"
    PROJECT_NAME: str = "Helpdesk API"
    VERSION: str = "0.1.0"
    DEBUG: bool = False

    # Security
    JWT_SECRET: str
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRATION_MINUTES: int = 1440  # 24 hours

    # Database
    DATABASE_URL: str

    # URLs
    APP_URL: str = "http://localhost:3000"

    # Email
    RESEND_API_KEY: Optional[str] = None
    EMAIL_FROM: str = "Support <onboarding@resend.dev>"
    ADMIN_EMAIL: str = "admin@example.com"

    # S3 / MinIO
    S3_ENDPOINT: Optional[str] = None
    S3_ACCESS_KEY: Optional[str] = None
    S3_SECRET_KEY: Optional[str] = None
    S3_BUCKET: str = "helpdesk-attachments"
    S3_REGION: str = "us-east-1"
    PRESIGNED_URL_EXPIRES_SECONDS: int = 300

    # Attachments
    ENABLE_ATTACHMENTS: bool = True
    ATTACHMENT_MAX_COUNT: int = 5
    ATTACHMENT_MAX_SIZE_BYTES: int = 10 * 1024 * 1024  # 10MB
    ATTACHMENT_ALLOWED_CONTENT_TYPES: list[str] = [
        "application/pdf",
        "image/png",
        "image/jpeg",
    ]

    # Ticket lifecycle
    REOPEN_WINDOW_DAYS: int = 14
    AUTO_CLOSE_DAYS: int = 14

    # Background jobs
    SCHEDULER_ENABLED: bool = True
    AUTO_CLOSE_INTERVAL_MINUTES: int = 60

    # CORS
    CORS_ORIGINS: list[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    @property
    def async_database_url(self) -> str:
        """Get async database URL"""
        return self.DATABASE_URL.replace("postgresql://", "postgresql+asyncpg://")


settings = Settings()
