"""
Application Configuration
=========================
Centralized settings for the VisionLab filter service.
"""

from pydantic_settings import BaseSettings
from typing import Literal


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    # Application
    app_name: str = "VisionLab"
    version: str = "0.1.0"
    debug: bool = False
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # Uploads
    max_file_size_mb: int = 25

    # Histogram charts
    chart_dpi: int = 100

    # CORS for the browser front end
    cors_origins: list[str] = ["*"]

    class Config:
        env_file = ".env"
        env_prefix = "VISIONLAB_"

    @property
    def max_file_size_bytes(self) -> int:
        return self.max_file_size_mb * 1024 * 1024


settings = Settings()
