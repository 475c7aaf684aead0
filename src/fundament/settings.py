"""
Configuration module for Fundament defaults and environment overrides.
"""

from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

# Fallback refresh interval in seconds, used whenever no interval is configured.
DEFAULT_UPDATE_INTERVAL = 60.0

# Name of the bootstrap configuration looked up under ``<root_dir>/config``.
DEFAULT_CONFIG_NAME = "fundament"


class Settings(BaseSettings):
    """
    Application settings using Pydantic for validation
    and environment variable support.
    """

    # Project root directory
    root_dir: Path = Field(
        default_factory=lambda: Path(__file__).resolve().parent.parent.parent
    )

    # Bootstrap mapping of data sources, loaded at start-up when present
    default_config: Optional[Path] = Field(default=None, validate_default=True)

    # Scheduler settings
    default_update_interval: float = Field(
        default=DEFAULT_UPDATE_INTERVAL,
        description="Refresh interval in seconds for sources registered without one",
    )

    fetch_timeout: Optional[float] = Field(
        default=None,
        description="Abandon a fetch still outstanding after this many seconds",
    )

    max_workers: int = Field(
        default=4, description="Maximum number of parallel workers for fetching"
    )

    # Listener settings
    descriptive_listener_ids: bool = Field(
        default=False,
        description="Derive listener ids from the observer instead of a random token",
    )

    # Cache settings
    cache_max_entries: int = Field(
        default=1024, description="Number of cached values kept before evicting"
    )

    # URL data sources
    request_timeout: int = Field(default=30, description="Request timeout in seconds")

    # General settings
    log_level: str = Field(default="INFO", description="Logging level")

    model_config = {
        "env_prefix": "FUNDAMENT_",
        "case_sensitive": False,
    }

    @field_validator("default_config")
    @classmethod
    def set_default_config(cls, v, info):
        root_dir = info.data.get(
            "root_dir", Path(__file__).resolve().parent.parent.parent
        )
        return v or root_dir / "config" / f"{DEFAULT_CONFIG_NAME}.yml"

    @field_validator("default_update_interval")
    @classmethod
    def check_update_interval(cls, v):
        if v < 0:
            raise ValueError("default_update_interval must be non-negative")
        return v or DEFAULT_UPDATE_INTERVAL

    @field_validator("fetch_timeout")
    @classmethod
    def check_fetch_timeout(cls, v):
        if v is not None and v <= 0:
            return None
        return v

    @field_validator("max_workers", "cache_max_entries")
    @classmethod
    def check_positive(cls, v):
        if v < 1:
            raise ValueError("value must be at least 1")
        return v
