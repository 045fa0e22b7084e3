"""Driver settings read from the environment.

Storage descriptors and credentials are always passed explicitly to
``Connection.open``; the settings here only cover process-wide concerns:
where the native support library lives, the default session name, and how
logging is rendered.

Fields
──────
library_path       : Native support library file, or a directory holding it
session_name       : Default session name reported to the server
log_level          : structlog level used by ``configure_from_settings``
json_logs          : Force JSON (True) / console (False) output, None = auto
worker_name_prefix : Thread name prefix for per-connection workers

Every field can be set with a ``FRONTBASE_`` environment variable or in a
``.env`` file::

    FRONTBASE_LIBRARY_PATH=/opt/frontbase/lib
    FRONTBASE_SESSION_NAME=reporting

Tags:
    settings, configuration, pydantic, environment, fbspine

Doc-Types:
    - API Reference
    - Configuration Guide
"""

from __future__ import annotations

import sys
from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from fbspine.logging import configure_logging


def _default_session_name() -> str:
    return Path(sys.argv[0]).name if sys.argv and sys.argv[0] else "python"


class FrontbaseSettings(BaseSettings):
    """Process-wide driver settings."""

    model_config = SettingsConfigDict(
        env_prefix="FRONTBASE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Native library ───────────────────────────────────────────
    library_path: Path | None = Field(
        default=None,
        description="Native support library file or directory containing it",
    )

    # ── Sessions ─────────────────────────────────────────────────
    session_name: str = Field(default_factory=_default_session_name)
    worker_name_prefix: str = "fbspine-worker"

    # ── Observability ────────────────────────────────────────────
    log_level: str = "INFO"
    json_logs: bool | None = None


@lru_cache(maxsize=1)
def get_settings() -> FrontbaseSettings:
    """Return the process-wide settings, read once."""
    return FrontbaseSettings()


def configure_from_settings(settings: FrontbaseSettings | None = None) -> None:
    """Apply the logging part of ``settings`` (defaults to ``get_settings()``)."""
    settings = settings or get_settings()
    configure_logging(level=settings.log_level, json_format=settings.json_logs)


__all__ = [
    "FrontbaseSettings",
    "get_settings",
    "configure_from_settings",
]
