"""
SuburbMates Directory - Configuration

Loads settings from environment variables with sensible defaults.
"""

from pathlib import Path

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings

# Load .env file
load_dotenv()

# Project root directory
PROJECT_ROOT = Path(__file__).parent.parent


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    DATABASE_URL: str = Field(
        default=f"sqlite:///{PROJECT_ROOT}/data/suburbmates.db"
    )

    @property
    def project_root(self) -> Path:
        """Return project root directory."""
        return PROJECT_ROOT

    # Application
    DEBUG: bool = Field(default=False)
    LOG_LEVEL: str = Field(default="INFO")
    LOG_DIR: str = Field(default="logs")
    LOG_TO_FILE: bool = Field(default=True)

    # Admin API
    ADMIN_API_TOKEN: str = Field(default="")
    API_HOST: str = Field(default="127.0.0.1")
    API_PORT: int = Field(default=8000)

    # Duplicate detection
    LOOSE_NAME_SIMILARITY_THRESHOLD: float = Field(default=0.8)

    # Quality scoring
    MAX_MANUAL_BOOST: int = Field(default=20)

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
