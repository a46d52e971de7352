"""Offline engine configuration from environment variables."""

import os
from functools import lru_cache
from os.path import abspath, dirname, join

from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict


# Current file is backend/shopsync/config.py, root is two levels up
base_dir = dirname(dirname(dirname(abspath(__file__))))
env_file_path = join(base_dir, ".env")

if os.path.exists(env_file_path):
    load_dotenv(env_file_path)


# Replay attempts before an entry becomes terminally failed.
MAX_RETRIES: int = 3


class Settings(BaseSettings):
    """Settings for the offline queue, connectivity monitor and synchronizer."""

    model_config = SettingsConfigDict(
        env_prefix="SHOPSYNC_",
        env_file=env_file_path,
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    app_name: str = "shopsync"
    debug: bool = False

    # Remote API
    api_base_url: str = "http://localhost:3000"
    ping_endpoint: str = "/api/ping"

    # Connectivity heartbeat
    enable_heartbeat: bool = True
    check_interval_seconds: float = 2.0
    probe_timeout_seconds: float = 1.5
    online_confirm_delay_seconds: float = 0.1

    # Sync behaviour
    auto_sync: bool = True
    sync_on_start: bool = True
    reconnect_debounce_seconds: float = 1.0
    status_refresh_interval_seconds: float = 5.0
    max_retries: int = MAX_RETRIES
    inter_operation_delay_seconds: float = 0.1
    replay_timeout_seconds: float = 15.0
    # Off by default: every failure is retried identically up to max_retries.
    fail_fast_on_client_errors: bool = False

    # Durable store
    data_dir: str = "./data/offline"
    queue_namespace: str = "pending_operations"
    cache_namespace: str = "cached_data"
    cache_default_ttl_seconds: int = 24 * 60 * 60

    # Auth token, read at call time
    auth_token: str | None = None
    auth_token_file: str | None = None

    # Observability
    event_history_size: int = 200
    log_level: str = "INFO"
    syslog_host: str | None = None
    syslog_port: int = 514
    ntfy_url: str | None = None
    ntfy_topic: str | None = None
    otel_endpoint: str | None = None
    otel_service_name: str = "shopsync"

    @property
    def ping_url(self) -> str:
        return f"{self.api_base_url.rstrip('/')}{self.ping_endpoint}"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
