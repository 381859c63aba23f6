"""workerstats configuration loaded from environment variables."""

from __future__ import annotations

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    # Identity shown in the procline and metrics
    domain: str = Field(default="localhost", alias="APP_DOMAIN")
    revision: str = Field(default="<none>", alias="APP_REVISION")
    procline_program: str = Field(default="unicorn", alias="PROCLINE_PROGRAM")

    # Utilization window
    window_seconds: float = Field(default=100, gt=0, alias="UTILIZATION_WINDOW")
    track_gc: bool = Field(default=True, alias="TRACK_GC")

    # Metrics
    stats_backend: str = Field(default="none", alias="STATS_BACKEND")
    stats_prefix: str = Field(default="rack", alias="STATS_PREFIX")
    # Unset: use this machine's short hostname. Empty: leave the hostname out.
    stats_hostname: Optional[str] = Field(default=None, alias="STATS_HOSTNAME")

    # Status endpoint and response annotation
    status_path: str = Field(default="/status", alias="STATUS_PATH")
    status_response: str = Field(default="OK", alias="STATUS_RESPONSE")
    node_hostname: str = Field(default="", alias="NODE_HOSTNAME")

    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    @property
    def stats_enabled(self) -> bool:
        return self.stats_backend.lower() not in {"", "none", "off"}

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore", "populate_by_name": True}


settings = Settings()
