"""
Application settings and configuration management.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""
    
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False
    )
    
    # Database Configuration
    database_url: str = Field(
        "sqlite+aiosqlite:///./counterfeit_scan.db",
        description="SQLAlchemy async database URL (sqlite+aiosqlite or mysql+aiomysql)"
    )
    database_echo: bool = Field(False, description="Echo SQL statements")
    
    # Vision Provider Configuration
    google_vision_api_key: Optional[str] = Field(None, description="Google Cloud Vision API key")
    google_vision_endpoint: str = Field(
        "https://vision.googleapis.com/v1/images:annotate",
        description="Cloud Vision annotate endpoint"
    )
    vision_timeout_seconds: float = Field(15.0, description="Vision request timeout")
    
    # Scan Job Configuration
    scan_worker_count: int = Field(4, ge=1, description="Concurrent scan workers")
    scan_queue_size: int = Field(100, ge=1, description="Maximum queued scan jobs")
    poll_interval_seconds: float = Field(1.0, gt=0, description="Job status polling interval")
    recovery_interval_seconds: float = Field(5.0, gt=0, description="Pending job recovery sweep interval")
    
    # Training Configuration
    training_min_records: int = Field(5, ge=1, description="Verified scans needed for adjustment")
    training_adjustment_points: int = Field(10, ge=0, description="Training adjustment magnitude")
    
    # Application Configuration
    app_env: str = Field("development", description="Application environment")
    app_debug: bool = Field(False, description="Debug mode")
    
    # Logging Configuration
    log_level: str = Field("INFO", description="Logging level")
    log_format: str = Field("json", description="Log format (json or console)")


@lru_cache()
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
