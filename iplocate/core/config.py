# iplocate/core/config.py
# Configuration management
#
# What it does:
# 1. Loads configuration from environment variables with Pydantic Settings
# 2. Supports reading a .env file
# 3. Gives type-safe access to every setting
#
# Usage:
#   from iplocate.core.config import settings
#   print(settings.TEMPORAL_HOST)
#
# Workflow definitions must NOT import this module: settings can change
# between deployments, and workflow code has to replay identically.

from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import Literal


class Settings(BaseSettings):
    """
    Application settings

    Every field can be overridden by an environment variable with the same
    (upper-case) name, e.g. TEMPORAL_HOST=temporal:7233
    """

    # ==================== Application ====================
    APP_NAME: str = "IP Locate"        # Shown in logs and CLI banners
    DEBUG: bool = False                # Verbose third-party logging

    # ==================== Logging ====================
    # DEBUG < INFO < WARNING < ERROR < CRITICAL
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"

    # console: coloured, human readable; json: one JSON object per line
    LOG_FORMAT: Literal["console", "json"] = "console"

    # ==================== Temporal ====================
    # Local dev server: `temporal server start-dev` listens on localhost:7233
    TEMPORAL_HOST: str = "localhost:7233"

    # Namespace isolating environments / tenants
    TEMPORAL_NAMESPACE: str = "default"

    # Task queue the worker polls; every workflow and activity lives here
    TEMPORAL_TASK_QUEUE: str = "ip-geolocation-task-queue"

    # Web UI, only printed by the CLI
    TEMPORAL_UI_URL: str = "http://localhost:8233"

    # ==================== Redis ====================
    # Durable store for lookup records (record / compensate activities)
    REDIS_URL: str = "redis://localhost:6379/0"

    # Lookup records expire after one day unless compensated earlier
    LOOKUP_RECORD_TTL_SECONDS: int = 86400

    # ==================== Capability providers ====================
    # Echoes the caller's public address as plain text
    IP_ECHO_URL: str = "https://api.ipify.org"

    # ip-api.com JSON endpoint; the address is appended as a path segment
    IP_API_BASE_URL: str = "http://ip-api.com/json"

    # Per-request timeout for every outbound HTTP call
    HTTP_TIMEOUT_SECONDS: float = 10.0

    class Config:
        """Pydantic configuration"""
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """
    Return the settings instance (singleton)

    lru_cache makes sure the environment and .env file are read only once.

    Returns:
        Settings: the settings instance
    """
    return Settings()


# Usage: from iplocate.core.config import settings
settings = get_settings()
