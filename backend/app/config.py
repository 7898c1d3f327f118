"""
SafeTrack Configuration
=======================
All environment variables in one place. Pydantic Settings validates
types at startup so a bad database URL or TTL fails at boot, not on the
first dashboard poll.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Loaded from environment variables or a .env file."""

    # --- Supabase (durable measurement store + auth) ---
    supabase_url: str = "http://localhost:54321"
    supabase_service_key: str = ""  # service_role key for backend operations

    # --- Realtime Database (live device telemetry) ---
    live_data_url: str = "http://localhost:9000"
    live_data_root: str = "health-tracker"
    # Database secret or ID token, sent as the REST `auth` query parameter
    live_data_auth_token: str = ""
    live_data_timeout_seconds: float = 5.0

    # --- Telemetry engine ---
    status_cache_ttl_ms: int = 2000
    gps_history_limit: int = 10
    heartbeat_history_limit: int = 20
    default_device_name: str = "ESP32_Health_Tracker"
    pulse_threshold: int = 3300

    # --- App settings ---
    environment: str = "development"  # development | staging | production
    log_level: str = "INFO"
    cors_origins: list[str] = ["http://localhost:3000", "http://localhost:19006"]

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


@lru_cache
def get_settings() -> Settings:
    return Settings()
