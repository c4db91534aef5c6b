"""Application configuration."""
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    database_url: str = "sqlite+aiosqlite:///./sparkcall.db"

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "INFO"

    # Calls
    call_video_enabled: bool = True
    call_connect_timeout: Optional[float] = 30.0  # seconds, None disables
    ice_servers: List[str] = [
        "stun:stun.l.google.com:19302",
        "stun:stun1.l.google.com:19302",
    ]
    call_api_base_url: str = "http://localhost:8000"

    # Chat
    chat_poll_interval: float = 3.0
    chat_message_max_length: int = 1000

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )


settings = Settings()
