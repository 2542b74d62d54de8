"""
Configuration management for the file storage API.

All settings come from environment variables (or a .env file). Exactly one
storage backend is active per process; switching requires a restart.
"""
from functools import lru_cache
from typing import Any, Dict, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Ignore extra fields in .env file
    )

    # Application
    VERSION: str = "1.0.0"
    DEBUG: bool = False

    # API Configuration
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 9090
    API_LOG_LEVEL: str = "info"
    LOG_FORMAT: str = "json"  # json or console

    # Storage
    STORAGE_BACKEND: str = "file"  # file or gridfs
    STORAGE_PATH: str = "./files"

    # GridFS
    MONGO_URL: str = "localhost:27017"
    MONGO_USER: str = ""
    MONGO_PASS: str = ""
    MONGO_DB: str = "test"
    GRIDFS_BUCKET: str = "example"
    GRIDFS_CHUNK_SIZE: Optional[int] = None
    MONGO_TIMEOUT_MS: int = 5000

    # Transfers
    MAX_UPLOAD_SIZE: int = 32 << 20  # 32 MiB, larger bodies are truncated
    DISTINCT_NOT_FOUND: bool = False  # 404 instead of 500 for absent objects

    # Monitoring
    ENABLE_METRICS: bool = True
    METRICS_PORT: int = 9000

    @field_validator("STORAGE_BACKEND", "LOG_FORMAT", "API_LOG_LEVEL")
    @classmethod
    def normalize_choice(cls, v: str) -> str:
        return v.strip().lower()

    @field_validator("MAX_UPLOAD_SIZE")
    @classmethod
    def check_upload_size(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("MAX_UPLOAD_SIZE must be positive")
        return v

    @property
    def storage_backend_config(self) -> Dict[str, Any]:
        """Backend configuration dictionary for create_storage_backend."""
        if self.STORAGE_BACKEND in ("gridfs", "mongodb", "mongo"):
            return {
                "type": "gridfs",
                "name": "gridfs",
                "host": self.MONGO_URL,
                "username": self.MONGO_USER,
                "password": self.MONGO_PASS,
                "database": self.MONGO_DB,
                "bucket": self.GRIDFS_BUCKET,
                "chunk_size": self.GRIDFS_CHUNK_SIZE,
                "timeout_ms": self.MONGO_TIMEOUT_MS,
            }
        return {
            "type": self.STORAGE_BACKEND,
            "name": "local",
            "base_path": self.STORAGE_PATH,
        }


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()

