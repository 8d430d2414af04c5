"""Application configuration settings."""

from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List
import json


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""
    
    # Database
    MONGODB_URL: str = "mongodb://localhost:27017"
    DATABASE_NAME: str = "clinic_management"
    
    # Application
    APP_NAME: str = "Clinic Lab Workflow API"
    API_V1_PREFIX: str = ""  # Paths are served as /test-requests, /superadmin/...
    PORT: int = 5000
    
    # Security
    JWT_SECRET_KEY: str = "change-me-in-production"
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24
    
    # CORS
    BACKEND_CORS_ORIGINS: str = '["http://localhost:3000", "http://localhost:5173"]'
    
    # Report storage
    UPLOAD_DIR: str = "uploads"
    REPORTS_SUBDIR: str = "reports"
    MAX_REPORT_UPLOAD_MB: int = 20
    
    # Billing
    DEFAULT_CURRENCY: str = "INR"
    
    # Notifications
    NOTIFICATION_INBOX_LIMIT: int = 50
    
    # Environment
    ENVIRONMENT: str = "development"
    DEBUG: bool = True
    
    # Logging
    LOG_LEVEL: str = "INFO"  # DEBUG, INFO, WARNING, ERROR, CRITICAL
    
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )
    
    @property
    def cors_origins(self) -> List[str]:
        """Parse CORS origins from JSON string."""
        try:
            return json.loads(self.BACKEND_CORS_ORIGINS)
        except (TypeError, ValueError):
            return ["http://localhost:3000"]


settings = Settings()
