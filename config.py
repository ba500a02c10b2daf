"""
config.py
Settings loaded from environment variables (prefix GYM_) or a .env file.
"""

from __future__ import annotations

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(env_prefix="GYM_", env_file=".env", extra="ignore")

    # Database
    db_file: Path = Path(__file__).with_name("gym.db")
    db_timeout: float = 5.0  # seconds a writer waits on a locked database

    # Member ID allocation
    member_id_max_attempts: int = 3

    # Auth
    default_admin_username: str = "admin"
    default_admin_password: str = "admin123"
    bcrypt_rounds: int = 12

    # Listing
    page_size_max: int = 100

    log_level: str = "INFO"


settings = Settings()
