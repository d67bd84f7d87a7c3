"""
Application configuration using Pydantic Settings.

Tree store backend switching is controlled by the TREE_STORE_BACKEND variable.
"""

from functools import lru_cache
from typing import List, Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # ===========================================
    # Environment
    # ===========================================
    ENVIRONMENT: Literal["local", "gcp"] = "local"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"

    # ===========================================
    # Tree Store
    # ===========================================
    # Tree store backend: "memory" | "sqlite"
    # - memory: process-local dict tree (tests, demos)
    # - sqlite: leaf rows persisted through SQLAlchemy (aiosqlite)
    TREE_STORE_BACKEND: Literal["memory", "sqlite"] = "sqlite"
    DATABASE_URL: str = "sqlite+aiosqlite:///./storefront_chat.db"

    # ===========================================
    # Chat
    # ===========================================
    # Size of the live message window delivered to listeners
    MESSAGE_WINDOW_LIMIT: int = 50
    # Chats per multi-path update when scrubbing a departed user
    SCRUB_BATCH_SIZE: int = 500

    # ===========================================
    # Auth
    # ===========================================
    AUTH_PROVIDER: Literal["mock"] = "mock"
    ADMIN_USER_IDS: List[str] = Field(default_factory=list)

    # ===========================================
    # Server
    # ===========================================
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    ALLOWED_ORIGINS: List[str] = Field(
        default=["http://localhost:3000", "http://localhost:5173"]
    )
    SSE_KEEPALIVE_SECONDS: float = 15.0

    @property
    def is_gcp(self) -> bool:
        """Check if running in GCP environment."""
        return self.ENVIRONMENT == "gcp"

    @property
    def is_local(self) -> bool:
        """Check if running in local environment."""
        return self.ENVIRONMENT == "local"


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Using lru_cache ensures settings are loaded only once.
    """
    return Settings()
