"""
Centralized configuration for the kitchen backend.

All environment variables and settings should be defined here
to avoid duplication across modules.
"""
import os
from functools import lru_cache
from pathlib import Path

ROOT_DIR = Path(__file__).resolve().parents[2]


class Settings:
    """Application settings loaded from environment variables."""

    # CORS - comma-separated list of allowed origins
    ALLOWED_ORIGINS: list = os.environ.get(
        "ALLOWED_ORIGINS",
        "http://localhost:3000,http://localhost:5173,http://127.0.0.1:3000"
    ).split(",")

    # Database
    DB_PATH: str = os.environ.get("KITCHEN_DB_PATH", str(ROOT_DIR / "data" / "kitchen.db"))

    # API key for protecting destructive endpoints (optional)
    API_KEY: str = os.environ.get("KITCHEN_API_KEY", "")

    # Background worker
    WORKER_POLL_SECONDS: int = int(os.environ.get("WORKER_POLL_SECONDS", "5"))
    JOB_MAX_ATTEMPTS: int = int(os.environ.get("JOB_MAX_ATTEMPTS", "3"))

    # Daily sweeps (local hour of day)
    LOW_STOCK_SWEEP_HOUR: int = int(os.environ.get("LOW_STOCK_SWEEP_HOUR", "6"))
    MISSING_DELIVERY_SWEEP_HOUR: int = int(os.environ.get("MISSING_DELIVERY_SWEEP_HOUR", "7"))

    # Price history older than this is compacted weekly (0 = keep everything)
    PRICE_HISTORY_RETENTION_DAYS: int = int(os.environ.get("PRICE_HISTORY_RETENTION_DAYS", "730"))


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Singleton instance for easy import
settings = get_settings()
