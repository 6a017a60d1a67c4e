"""Configuration for the dnet dashboard.

Two layers live here:

- ``Config``: the operator-editable connection and generation settings. They
  are persisted as ``dnet.json``, resolved from the working directory first and
  then from ``~/.dria/dnet/``. If neither exists a default file is written to
  the working directory.
- ``TuiSettings``: process settings (logging, storage paths) read from the
  environment and an optional ``.env`` file.

Usage:
    from dnet_tui.config import Config, get_settings
    config = Config.load()
    print(config.api_url())
"""

from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

CONFIG_FILENAME = "dnet.json"
USER_CONFIG_DIR = "~/.dria/dnet"

KVBits = Literal["4bit", "8bit", "fp16"]


def local_config_path() -> Path:
    return Path.cwd() / CONFIG_FILENAME


def user_config_path() -> Path:
    """Path to ``$HOME/.dria/dnet/dnet.json``."""
    return Path(USER_CONFIG_DIR).expanduser() / CONFIG_FILENAME


class LoggingSettings(BaseSettings):
    """Logging configuration."""

    model_config = SettingsConfigDict(env_prefix="DNET_")

    log: str = Field(
        default="INFO",
        description="Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    profile: bool = Field(
        default=False,
        description="Enable profile logging",
    )


class StorageSettings(BaseSettings):
    """Storage paths configuration."""

    model_config = SettingsConfigDict(env_prefix="DNET_")

    log_dir: str = Field(
        default="~/.dria/dnet/logs",
        description="Log files directory",
    )


class TuiSettings(BaseSettings):
    """Process settings, loads from .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)


@lru_cache
def get_settings() -> TuiSettings:
    """Get cached settings instance."""
    return TuiSettings()


class Config(BaseSettings):
    """Connection parameters and generation defaults.

    Fields can be overridden from the environment with the ``DNET_TUI_``
    prefix, but values read from ``dnet.json`` take precedence.
    Assignments are validated, so the settings editor writes through
    :meth:`write_setting` and gets a ``ValueError`` on bad input.
    """

    model_config = SettingsConfigDict(
        env_prefix="DNET_TUI_",
        validate_assignment=True,
        extra="ignore",
    )

    api_host: str = Field(
        default="127.0.0.1", min_length=1, description="API server host"
    )
    api_port: int = Field(
        default=8080, ge=1, le=65535, description="API server HTTP port"
    )
    max_tokens: int = Field(
        default=2000, ge=1, le=100_000, description="Default max tokens per reply"
    )
    temperature: float = Field(
        default=0.7, ge=0.0, le=2.0, description="Sampling temperature"
    )
    devices_refresh_interval: int = Field(
        default=5, ge=1, description="Devices view refresh interval in seconds"
    )
    kv_bits: KVBits = Field(
        default="8bit", description="KV cache quantization for topology preparation"
    )
    seq_len: int = Field(
        default=512, ge=1, description="Sequence length to optimize the topology for"
    )
    max_batch_exp: int = Field(
        default=2, ge=0, le=8, description="Max batch size as power of 2 exponent"
    )

    @classmethod
    def load(cls, path: Optional[Path] = None) -> "Config":
        """Load the config file.

        With an explicit ``path`` only that file is read (and created with
        defaults if missing). Otherwise the working directory is tried first,
        then the user config directory.
        """
        if path is not None:
            if path.exists():
                return cls.from_file(path)
            config = cls()
            config.save(path)
            return config

        for candidate in (local_config_path(), user_config_path()):
            if candidate.exists():
                return cls.from_file(candidate)

        config = cls()
        config.save(local_config_path())
        return config

    @classmethod
    def from_file(cls, path: Path) -> "Config":
        data = json.loads(path.read_text(encoding="utf-8"))
        return cls(**data)

    def save(self, path: Optional[Path] = None) -> Path:
        """Write the config as pretty JSON, to the user config dir by default."""
        target = path or user_config_path()
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(self.model_dump_json(indent=2), encoding="utf-8")
        return target

    @staticmethod
    def current_location() -> str:
        """Where the active config file lives, for display."""
        local = local_config_path()
        if local.exists():
            return f"./{CONFIG_FILENAME}"
        user = user_config_path()
        if user.exists():
            return str(user)
        return f"./{CONFIG_FILENAME} (not found)"

    def api_url(self) -> str:
        return f"http://{self.api_host}:{self.api_port}"

    def read_setting(self, name: str) -> str:
        return str(getattr(self, name))

    def write_setting(self, name: str, raw: str) -> None:
        """Parse and assign a setting from editor input.

        Raises:
            ValueError: if ``name`` is unknown or the value fails validation.
        """
        if name not in type(self).model_fields:
            raise ValueError(f"Unknown setting: {name}")
        # pydantic's ValidationError subclasses ValueError
        setattr(self, name, raw.strip())


__all__ = [
    "Config",
    "KVBits",
    "TuiSettings",
    "get_settings",
    "LoggingSettings",
    "StorageSettings",
    "local_config_path",
    "user_config_path",
]
