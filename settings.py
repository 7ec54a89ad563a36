from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional, Sequence

from dotenv import dotenv_values

from errors import ConfigError

DATABASE_NAME = "ts"
COLLECTION_NAME = "temphums"
LOCAL_TIMEZONE = "America/Chicago"
CONNECT_TIMEOUT_SECONDS = 10.0

DEFAULT_ENV_FILES: tuple[str, ...] = (".env", ".env.local")

_MONGO_URI_ENV = "MONGO_URI"
_SOURCE_URI_ENV = "SOURCE_MONGO_URI"
_DEST_URI_ENV = "DEST_MONGO_URI"
_LOG_LEVEL_ENV = "LOG_LEVEL"

_FIELD_TO_ENV = {
    "mongo_uri": _MONGO_URI_ENV,
    "source_mongo_uri": _SOURCE_URI_ENV,
    "dest_mongo_uri": _DEST_URI_ENV,
}


@dataclass(frozen=True)
class Settings:
    mongo_uri: Optional[str] = None
    source_mongo_uri: Optional[str] = None
    dest_mongo_uri: Optional[str] = None
    log_level: str = "INFO"

    def require(self, field: str) -> str:
        """Return a connection string or fail naming its environment variable."""
        value = getattr(self, field)
        if not value:
            raise ConfigError(f"{_FIELD_TO_ENV[field]} not set in environment")
        return value


def _read_optional(values: Mapping[str, Optional[str]], name: str) -> Optional[str]:
    value = values.get(name)
    if value is None:
        return None
    candidate = value.strip()
    return candidate or None


def _read_log_level(values: Mapping[str, Optional[str]], default: str) -> str:
    candidate = _read_optional(values, _LOG_LEVEL_ENV)
    if candidate is None:
        return default
    return candidate.upper()


def read_env_files(
    env_files: Sequence[str | Path] = DEFAULT_ENV_FILES,
    required: bool = False,
) -> dict[str, Optional[str]]:
    """Merge env files in order so later files override earlier ones.

    Missing files are skipped unless ``required`` is set.
    """
    merged: dict[str, Optional[str]] = {}
    for entry in env_files:
        path = Path(entry)
        if not path.is_file():
            if required:
                raise ConfigError(f"Error loading {path} file: not found")
            continue
        try:
            merged.update(dotenv_values(path))
        except OSError as exc:
            raise ConfigError(f"Error loading {path} file: {exc}") from exc
    return merged


def load_settings(
    env_files: Optional[Sequence[str | Path]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> Settings:
    """Build settings from env files overlaid by the process environment."""
    if env_files is None:
        file_values = read_env_files(DEFAULT_ENV_FILES)
    else:
        file_values = read_env_files(env_files, required=True)

    values: dict[str, Optional[str]] = dict(file_values)
    values.update(os.environ if environ is None else environ)

    return Settings(
        mongo_uri=_read_optional(values, _MONGO_URI_ENV),
        source_mongo_uri=_read_optional(values, _SOURCE_URI_ENV),
        dest_mongo_uri=_read_optional(values, _DEST_URI_ENV),
        log_level=_read_log_level(values, "INFO"),
    )
