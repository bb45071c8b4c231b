"""
Runtime configuration for the storefront promotion service.

Values come from environment variables; every field has a default that works
for local development against the bundled fixtures.

Environment variables (optional):
- STOREFRONT_DATA_DIR: directory holding promotions.json (default: ./data)
- STOREFRONT_PERSIST: write store mutations back to the JSON file
- STOREFRONT_FETCH_TIMEOUT: seconds before a viewer's promotion lookup fails open
- STOREFRONT_LOG_LEVEL: logging level for the API, CLI and demo
"""

import logging
import os
from pathlib import Path
from typing import Mapping, Optional
from pydantic import BaseModel, Field, field_validator


DEFAULT_DATA_DIR = Path(__file__).parent.parent / "data"

LOG_FORMAT = "%(asctime)s | %(name)-24s | %(levelname)-5s | %(message)s"
LOG_DATE_FORMAT = "%H:%M:%S"


def _env_bool(value: Optional[str], default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "y", "on"}


class Settings(BaseModel):
    """Settings shared by the API, the CLI and the demo."""
    data_dir: Path = Field(default=DEFAULT_DATA_DIR)
    persist: bool = Field(default=False, description="Flush store writes to disk")
    fetch_timeout: float = Field(default=2.0, gt=0, description="Seconds")
    log_level: str = Field(default="INFO")

    @field_validator("log_level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        value = value.upper()
        if not isinstance(logging.getLevelName(value), int):
            raise ValueError(f"Unknown log level: {value}")
        return value

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """Build settings from environment variables (os.environ by default)."""
        env = os.environ if environ is None else environ
        values = {}
        if env.get("STOREFRONT_DATA_DIR"):
            values["data_dir"] = Path(env["STOREFRONT_DATA_DIR"])
        if "STOREFRONT_PERSIST" in env:
            values["persist"] = _env_bool(env["STOREFRONT_PERSIST"])
        if env.get("STOREFRONT_FETCH_TIMEOUT"):
            values["fetch_timeout"] = env["STOREFRONT_FETCH_TIMEOUT"]
        if env.get("STOREFRONT_LOG_LEVEL"):
            values["log_level"] = env["STOREFRONT_LOG_LEVEL"]
        return cls(**values)


def configure_logging(settings: Settings) -> None:
    """Configure root logging the same way for every entry point."""
    logging.basicConfig(
        level=settings.log_level,
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT,
    )
