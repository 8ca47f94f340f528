"""
Application configuration using pydantic-settings.
"""

from pathlib import Path
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


def find_env_file() -> str:
    """Find .env file by checking multiple locations."""
    # Try relative to this file (server/app/config.py)
    current_dir = Path(__file__).parent
    candidates = [
        current_dir / ".env",  # server/app/.env
        current_dir.parent / ".env",  # server/.env
        current_dir.parent.parent / ".env",  # project root/.env
    ]

    for candidate in candidates:
        if candidate.exists():
            return str(candidate)

    # Default to project root
    return str(current_dir.parent.parent / ".env")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=find_env_file(),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    APP_ENV: str = "development"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:8000"]

    # Server
    BASE_URL: str = (
        "https://your-domain.ngrok.io"  # Public URL for webhooks (ngrok during development)
    )

    # Database (read-only access)
    DATABASE_URL: str = ""  # Must be set in .env file
    READONLY_DATABASE_URL: str = ""  # SELECT-only role, preferred over DATABASE_URL when set
    DATABASE_QUERY_TIMEOUT_SECONDS: float = 5.0

    # OpenAI Realtime
    OPENAI_API_KEY: str = ""
    OPENAI_REALTIME_URL: str = "wss://api.openai.com/v1/realtime"
    OPENAI_REALTIME_MODEL: str = "gpt-4o-realtime-preview-2024-12-17"
    OPENAI_VOICE: str = "alloy"
    OPENAI_TEMPERATURE: float = 0.7
    OPENAI_TRANSCRIPTION_MODEL: str = "whisper-1"
    UPSTREAM_CONNECT_TIMEOUT_SECONDS: float = 10.0

    # Server-side voice activity detection
    VAD_THRESHOLD: float = 0.5
    VAD_PREFIX_PADDING_MS: int = 300
    VAD_SILENCE_DURATION_MS: int = 1000

    # Call behaviour
    ENABLE_BARGE_IN: bool = True
    DISPLAY_TIMEZONE: str = "America/New_York"


settings = Settings()
