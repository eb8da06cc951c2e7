"""
Centralized Configuration System
Environment-aware settings for the queue reader and its transports.
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache
from typing import Literal, Optional


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="allow"
    )
    """
    Reader configuration.
    Loads from environment variables with sensible defaults.
    """

    # ============================================
    # QUEUE
    # ============================================
    queue_url: str = ""
    aws_region: Optional[str] = None
    sqs_endpoint_url: Optional[str] = None  # e.g. a local SQS emulator

    # ============================================
    # POLLING
    # ============================================
    receive_wait_seconds: Optional[int] = None  # None = queue default
    initial_idle_delay_seconds: float = 5.0
    maximum_idle_delay_seconds: float = 300.0
    visibility_timeout_seconds: float = 30.0   # in-memory transport only

    # ============================================
    # LOGGING
    # ============================================
    log_level: Literal["TRACE", "DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    enable_structured_logging: bool = False  # Set to True for production JSON logs

    # ============================================
    # ENVIRONMENT
    # ============================================
    environment: Literal["development", "test", "staging", "production"] = "development"


@lru_cache()
def get_settings() -> Settings:
    """
    Singleton pattern for settings.
    Uses LRU cache to ensure only one Settings instance exists.
    """
    return Settings()
