"""Monitor configuration using Pydantic Settings plus the INI configuration file."""

from __future__ import annotations

import configparser
import os
from typing import Any, Optional

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .engine.digest import HashAlgorithm
from .errors import (
    ConfigurationError,
    InvalidPathError,
    MissingFileError,
    UnreadableFileError,
)

DAEMON_SECTION = "daemon"
FILES_SECTION = "files"

# INI key -> settings field
DAEMON_KEYS = {
    "file": "files",
    "hash_algorithm": "hash_algorithm",
    "check_period_minutes": "check_period_minutes",
}
FILES_KEYS = {
    "hashes_file": "hashes_file",
    "incidents_file": "incidents_file",
    "indicators_file": "indicators_file",
}


def _working_dir_file(name: str) -> str:
    return os.path.join(os.path.realpath(os.getcwd()), name)


class _MultiOptionDict(dict):
    """Option mapping that merges repeated ``file`` keys into one multi-line value.

    configparser stores raw option values as lists of lines while reading, so
    a repeated ``file = <path>`` extends the list already collected. Any other
    repeated key is an error.
    """

    def __setitem__(self, key, value):
        if isinstance(value, list) and key in self:
            if key != "file":
                raise ConfigurationError(f"Duplicate key: {key}")
            self[key].extend(value)
            return
        super().__setitem__(key, value)


class HidsConfig(BaseSettings):
    """Monitor settings. Loads from .env file and HIDS_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="HIDS_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Working files
    config_file: str = Field(default_factory=lambda: _working_dir_file("main.conf"))
    hashes_file: str = Field(default_factory=lambda: _working_dir_file("hashes.lst"))
    incidents_file: str = Field(default_factory=lambda: _working_dir_file("incidents.txt"))
    indicators_file: str = Field(default_factory=lambda: _working_dir_file("indicators.txt"))

    # Checking
    files: list[str] = []
    hash_algorithm: str = "SHA1"
    check_period_minutes: int = 60

    # Logging
    debug: bool = False
    log_dir: Optional[str] = None

    @field_validator("hash_algorithm")
    @classmethod
    def validate_hash_algorithm(cls, v: str) -> str:
        return HashAlgorithm.parse(v).name

    @field_validator("check_period_minutes")
    @classmethod
    def validate_check_period(cls, v: int) -> int:
        if v < 1:
            raise ValueError("check_period_minutes is 0 or less, should be at least 1")
        return v

    @field_validator("files")
    @classmethod
    def validate_files(cls, v: list[str]) -> list[str]:
        for path in v:
            canonical = os.path.realpath(path)
            if canonical != path:
                raise ValueError(f"monitored path {path!r} is not canonical ({canonical})")
        return v

    @property
    def algorithm(self) -> HashAlgorithm:
        return HashAlgorithm.parse(self.hash_algorithm)


def read_ini(ini_path: str) -> dict[str, Any]:
    """Read the INI configuration file into settings field values.

    ``[daemon]`` must list at least one monitored ``file``, either as repeated
    ``file = <path>`` keys or one path per line of a multi-line value;
    ``[files]`` is optional. Unknown sections or keys are rejected.
    """
    if not os.path.exists(ini_path):
        raise MissingFileError(ini_path)

    parser = configparser.ConfigParser(
        interpolation=None, strict=False, dict_type=_MultiOptionDict
    )
    try:
        with open(ini_path, "r", encoding="utf-8") as f:
            parser.read_file(f)
    except configparser.Error as e:
        raise ConfigurationError(f"Error parsing configuration file {ini_path}: {e}") from e

    for section in parser.sections():
        if section not in (DAEMON_SECTION, FILES_SECTION):
            raise ConfigurationError(f"Unknown section: {section}")
    if not parser.has_section(DAEMON_SECTION):
        raise ConfigurationError(f"Configuration file doesn't have a {DAEMON_SECTION} section.")

    values: dict[str, Any] = {}
    for section, allowed in ((DAEMON_SECTION, DAEMON_KEYS), (FILES_SECTION, FILES_KEYS)):
        if not parser.has_section(section):
            continue
        for key, raw in parser.items(section):
            if key not in allowed:
                raise ConfigurationError(f"Unknown key in {section}: {key}")
            values[allowed[key]] = raw.strip()

    files = [line.strip() for line in values.get("files", "").splitlines() if line.strip()]
    if not files:
        raise ConfigurationError(
            f"Configuration file should have at least one file to check in the {DAEMON_SECTION} section."
        )
    values["files"] = files
    return values


def load_config(ini_path: str | None = None, **overrides: Any) -> HidsConfig:
    """Build settings from defaults, environment, the INI file and overrides.

    Later sources win: INI values replace defaults and environment, and
    non-None ``overrides`` (command-line switches) replace INI values. Without
    an explicit path the INI file comes from ``HIDS_CONFIG_FILE`` (or .env),
    falling back to ``main.conf`` in the working directory.
    """
    ini_path = ini_path or overrides.get("config_file")
    try:
        if not ini_path:
            ini_path = HidsConfig().config_file
        values = read_ini(ini_path)
        values["config_file"] = ini_path
        values.update({k: v for k, v in overrides.items() if v is not None})
        return HidsConfig(**values)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration in {ini_path}: {e}") from e


def check_output_file(path: str) -> None:
    """The file must be canonical and writable, creating it when absent."""
    canonical = os.path.realpath(path)
    if canonical != path:
        raise InvalidPathError(path, canonical)
    if os.path.exists(path):
        if not os.access(path, os.W_OK):
            raise UnreadableFileError(path, action="write")
        return
    try:
        with open(path, "a", encoding="utf-8"):
            pass
    except OSError as e:
        raise UnreadableFileError(path, action="create") from e

