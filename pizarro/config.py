"""Application configuration."""
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings read from ``PIZARRO_*`` environment variables or a ``.env`` file."""

    # Storage
    DATA_DIR: str = "data"

    # Dashboard behaviour
    DEBOUNCE_MS: int = 500
    TOP_N: int = 10

    # API
    CORS_ORIGINS: str = "http://localhost:3000,http://127.0.0.1:3000,http://localhost:8501"
    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(env_prefix="PIZARRO_", env_file=".env", extra="ignore")

    @property
    def cors_origins(self) -> List[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    @property
    def debounce_seconds(self) -> float:
        return max(self.DEBOUNCE_MS, 0) / 1000


settings = Settings()
