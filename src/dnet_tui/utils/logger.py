"""Logging utilities for the dnet dashboard.

Usage:
    from dnet_tui.utils.logger import logger
    logger.info("message")

Log level and profile logging are controlled by environment variables:
    DNET_LOG=DEBUG
    DNET_PROFILE=true

Records are written to ``<log_dir>/dnet-tui.log`` only. The terminal is owned
by the dashboard, so nothing is attached to stderr.
"""

from __future__ import annotations

import logging
import os
from functools import lru_cache
from pathlib import Path

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s"
LOG_FILENAME = "dnet-tui.log"


def _is_env_truthy(val: str | None) -> bool:
    """Return True if the string represents a truthy value (1, true, yes, on)."""
    if not val:
        return False
    return val.strip().lower() in {"1", "true", "yes", "on"}


def _get_log_settings() -> tuple[str, bool, str]:
    """Get log settings, trying centralized config first, falling back to env vars.

    Returns:
        Tuple of (log_level, profile_enabled, log_dir)
    """
    try:
        from dnet_tui.config import get_settings

        settings = get_settings()
        return (
            settings.logging.log,
            settings.logging.profile,
            settings.storage.log_dir,
        )
    except Exception:
        # e.g. a malformed .env file; logging must still come up
        return (
            os.getenv("DNET_LOG", "INFO"),
            _is_env_truthy(os.getenv("DNET_PROFILE", "0")),
            os.getenv("DNET_LOG_DIR", "~/.dria/dnet/logs"),
        )


class ProfileLogFilter(logging.Filter):
    """Filter that hides [PROFILE] messages unless profiling is enabled."""

    def __init__(self, enabled: bool):
        super().__init__()
        self.enabled = enabled

    def filter(self, record: logging.LogRecord) -> bool:
        msg = record.getMessage() if hasattr(record, "getMessage") else str(record.msg)
        return not ("[PROFILE]" in msg and not self.enabled)


@lru_cache(maxsize=None)
def get_logger() -> logging.Logger:
    """Returns a configured logger for the dashboard.

    Log level is set by DNET_LOG env var (default INFO).
    Profile logs ([PROFILE]) are shown only if DNET_PROFILE env var is truthy.
    """
    log_level_str, profile_enabled, log_dir_str = _get_log_settings()

    log_level = getattr(logging, log_level_str.strip().upper(), logging.INFO)

    logger = logging.getLogger("dnet_tui")
    logger.setLevel(log_level)
    logger.propagate = False
    logger.addFilter(ProfileLogFilter(profile_enabled))

    try:
        log_dir = Path(log_dir_str).expanduser()
        log_dir.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_dir / LOG_FILENAME)
        file_handler.setLevel(log_level)
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(file_handler)
    except OSError:
        # read-only home; the footer log panel still receives records
        logger.addHandler(logging.NullHandler())

    return logger


logger = get_logger()
