"""Environment-driven configuration with Pydantic v2."""

from typing import List, Optional
from pathlib import Path
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

from constants import (
    DEFAULT_DASHBOARD_TTL,
    DEFAULT_OUTLETS_TTL,
    DEFAULT_PROBE_PATH,
    DEFAULT_PROBE_TIMEOUT,
    DEFAULT_QUEUE_MAX_RETRIES,
    DEFAULT_SALES_TTL,
)


class Settings(BaseSettings):
    """Application settings driven entirely by environment variables."""

    # Server Configuration
    host: str = Field(default="127.0.0.1", env="HOST")
    port: int = Field(default=3010, env="PORT", ge=1024, le=65535)
    debug: bool = Field(default=False, env="DEBUG")
    cors_origins: List[str] = Field(default_factory=lambda: ["http://localhost:5173"], env="CORS_ORIGINS")

    # Database Configuration (local replica)
    database_url: str = Field(default="sqlite+aiosqlite:///./data/outletsync.db", env="DATABASE_URL")
    database_echo: bool = Field(default=False, env="DATABASE_ECHO")

    # Remote API
    api_base_url: str = Field(default="http://localhost:8000/api", env="API_BASE_URL")
    api_timeout: float = Field(default=10.0, env="API_TIMEOUT", ge=1.0, le=120.0)

    # Connectivity probe
    probe_url: Optional[str] = Field(default=None, env="PROBE_URL")
    probe_timeout: float = Field(default=DEFAULT_PROBE_TIMEOUT, env="PROBE_TIMEOUT", gt=0, le=30.0)

    # Freshness windows per entity kind (seconds)
    outlets_ttl: int = Field(default=DEFAULT_OUTLETS_TTL, env="OUTLETS_TTL", ge=0)
    sales_ttl: int = Field(default=DEFAULT_SALES_TTL, env="SALES_TTL", ge=0)
    dashboard_ttl: int = Field(default=DEFAULT_DASHBOARD_TTL, env="DASHBOARD_TTL", ge=0)

    # Mutation queue
    queue_max_retries: int = Field(default=DEFAULT_QUEUE_MAX_RETRIES, env="QUEUE_MAX_RETRIES", ge=1, le=10)

    # Logging
    log_level: str = Field(default="INFO", env="LOG_LEVEL")
    log_format: str = Field(default="json", env="LOG_FORMAT")
    log_file: Optional[str] = Field(default=None, env="LOG_FILE")

    @field_validator("database_url")
    @classmethod
    def validate_database_url(cls, v):
        """Ensure database directory exists for SQLite."""
        if v and v.startswith("sqlite"):
            if ":///" in v:
                db_path = v.split("///")[1]
                if db_path and db_path != ":memory:":
                    Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        return v

    @property
    def resolved_probe_url(self) -> str:
        """Probe target, defaulting to a static resource on the API origin."""
        if self.probe_url:
            return self.probe_url
        base = self.api_base_url.rstrip("/")
        if base.endswith("/api"):
            base = base[:-len("/api")]
        return f"{base}{DEFAULT_PROBE_PATH}"

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore",
        "env_parse_none_str": "none",
    }
