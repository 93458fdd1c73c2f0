"""
Configuration system for Oligoscreen.

Uses Pydantic Settings for type-safe configuration with environment variable support.
Nested defaults can be overridden with ``OLIGOSCREEN_ALIGNMENT__MAX_MISMATCHES=3``
style variables.
"""

from pathlib import Path
from typing import Optional
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache

from oligoscreen.models.data_classes import AlignmentParams, ScreenParams


class OligoscreenConfig(BaseSettings):
    """Main configuration for Oligoscreen."""

    model_config = SettingsConfigDict(
        env_prefix="OLIGOSCREEN_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    # Paths
    output_dir: Path = Path("~/.oligoscreen/results").expanduser()

    # Run defaults
    alignment: AlignmentParams = Field(default_factory=AlignmentParams)
    screen: ScreenParams = Field(default_factory=ScreenParams)

    # Worker pool; None means one worker per CPU
    workers: Optional[int] = Field(None, ge=1)
    progress_interval: int = Field(10, ge=1)

    # Logging
    log_level: str = "INFO"
    log_file: Optional[Path] = None

    # API
    api_host: str = "127.0.0.1"
    api_port: int = 8000

    def ensure_directories(self) -> None:
        """Create the results directory if it doesn't exist."""
        self.output_dir.mkdir(parents=True, exist_ok=True)


@lru_cache()
def get_config() -> OligoscreenConfig:
    """Get cached configuration singleton."""
    return OligoscreenConfig()
