"""Configuration for opdoc.

Settings are read from ``pyproject.toml`` under ``[tool.opdoc]`` (or any
TOML file given explicitly / via ``OPDOC_CONFIG_PATH``), then environment
variable overrides are applied.

TOML configuration::

    [tool.opdoc]
    suffix = "_OpDoc"
    omit_empty = false

    [tool.opdoc.logging]
    level = "DEBUG"
    format = "rich"

Environment variable overrides::

    export OPDOC_SUFFIX=_Docs
    export OPDOC_OMIT_EMPTY=true
    export OPDOC_LOG_LEVEL=DEBUG
    export OPDOC_LOG_FORMAT=json
"""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, field, replace
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal

from opdoc.exceptions import ConfigurationError
from opdoc.logging import get_logger

logger = get_logger(__name__)

DEFAULT_SUFFIX = "_OpDoc"

_TRUTHY_VALUES = frozenset({"true", "1", "yes", "on", "enabled"})
_FALSY_VALUES = frozenset({"false", "0", "no", "off", "disabled"})
_LOG_LEVELS = ("TRACE", "DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
_LOG_FORMATS = ("structured", "json", "rich")


@dataclass(frozen=True, slots=True)
class LoggingConfig:
    """Logging configuration.

    Attributes
    ----------
    level : str, default="WARNING"
        Log level (TRACE, DEBUG, INFO, WARNING, ERROR, CRITICAL)
    format : str, default="structured"
        Output format (structured, json, rich)
    output_file : str | None, default=None
        Optional file path to write logs to
    """

    level: Literal["TRACE", "DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "WARNING"
    format: Literal["structured", "json", "rich"] = "structured"
    output_file: str | None = None

    def __post_init__(self) -> None:
        if self.level not in _LOG_LEVELS:
            raise ConfigurationError("logging.level", f"unknown level {self.level!r}")
        if self.format not in _LOG_FORMATS:
            raise ConfigurationError("logging.format", f"unknown format {self.format!r}")


@dataclass(frozen=True, slots=True)
class OpDocConfig:
    """Settings that shape generated companion declarations.

    Attributes
    ----------
    suffix : str
        Appended to the target function name to name its companion type
    omit_empty : bool
        Emit ``None`` instead of ``""`` for an empty summary or description
    logging : LoggingConfig
        Logging settings
    """

    suffix: str = DEFAULT_SUFFIX
    omit_empty: bool = False
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def __post_init__(self) -> None:
        if not self.suffix or not f"x{self.suffix}".isidentifier():
            raise ConfigurationError("suffix", f"{self.suffix!r} is not a valid identifier suffix")


def _parse_bool_env(value: str) -> bool:
    """Parse a boolean environment variable value.

    Raises
    ------
    ValueError
        If value is not a recognized boolean string
    """
    normalized = value.lower().strip()
    if normalized in _TRUTHY_VALUES:
        return True
    if normalized in _FALSY_VALUES:
        return False
    expected = sorted(_TRUTHY_VALUES | _FALSY_VALUES)
    raise ValueError(f"Invalid boolean value: {value!r}. Expected one of: {expected}")


def get_default_config() -> OpDocConfig:
    """Return the built-in defaults with environment overrides applied."""
    return _apply_env_overrides(OpDocConfig())


def load_config(path: str | Path | None = None) -> OpDocConfig:
    """Load configuration.

    Discovery order:

    1. Explicit path argument
    2. ``OPDOC_CONFIG_PATH`` env var
    3. ``pyproject.toml`` with a ``[tool.opdoc]`` table in CWD or a parent directory
    4. Built-in defaults

    The discovered file and the parsed settings are cached until
    :func:`clear_config_cache`; environment overrides are re-read each call.

    Parameters
    ----------
    path : str | Path | None
        Path to a TOML config file

    Returns
    -------
    OpDocConfig
        Parsed configuration with environment overrides applied

    Raises
    ------
    FileNotFoundError
        If an explicit path does not exist
    ConfigurationError
        If the file contents are invalid
    """
    config_path = _find_config_file(path)
    if config_path is None:
        return get_default_config()
    return _apply_env_overrides(_load_cached(str(config_path.absolute())))


def clear_config_cache() -> None:
    """Forget discovered config files and parsed settings."""
    _discover_pyproject.cache_clear()
    _load_cached.cache_clear()


@lru_cache(maxsize=32)
def _load_cached(path_str: str) -> OpDocConfig:
    config_path = Path(path_str)
    logger.debug("Loading configuration from {path}", path=config_path)
    try:
        with config_path.open("rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError(config_path.name, f"invalid TOML: {e}") from e

    if "tool" in data and "opdoc" in data.get("tool", {}):
        section = data["tool"]["opdoc"]
    elif config_path.name == "pyproject.toml":
        logger.debug("No [tool.opdoc] section in {path}, using defaults", path=config_path)
        section = {}
    else:
        section = data
    return _parse_config(section)


def _find_config_file(path: str | Path | None) -> Path | None:
    if path:
        config_path = Path(path)
        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")
        return config_path

    if env_path := os.getenv("OPDOC_CONFIG_PATH"):
        config_path = Path(env_path)
        if config_path.exists():
            return config_path
        logger.warning("OPDOC_CONFIG_PATH set but file not found: {}", config_path)

    return _discover_pyproject(str(Path.cwd()))


@lru_cache(maxsize=32)
def _discover_pyproject(start: str) -> Path | None:
    # Nearest pyproject.toml with a [tool.opdoc] table, walking up from start
    current = Path(start)
    while True:
        pyproject = current / "pyproject.toml"
        if pyproject.exists():
            with pyproject.open("rb") as f:
                try:
                    data = tomllib.load(f)
                except tomllib.TOMLDecodeError:
                    data = {}
            if "opdoc" in data.get("tool", {}):
                return pyproject
        if current == current.parent:
            return None
        current = current.parent


def _parse_config(data: dict[str, Any]) -> OpDocConfig:
    if not isinstance(data, dict):
        raise ConfigurationError("tool.opdoc", "expected a table")

    unknown = set(data) - {"suffix", "omit_empty", "logging"}
    if unknown:
        raise ConfigurationError("tool.opdoc", f"unknown keys: {', '.join(sorted(unknown))}")

    logging_data = data.get("logging", {})
    if not isinstance(logging_data, dict):
        raise ConfigurationError("logging", "expected a table")

    omit_empty = data.get("omit_empty", False)
    if not isinstance(omit_empty, bool):
        raise ConfigurationError("omit_empty", f"expected a boolean, got {omit_empty!r}")

    return OpDocConfig(
        suffix=str(data.get("suffix", DEFAULT_SUFFIX)),
        omit_empty=omit_empty,
        logging=LoggingConfig(
            level=str(logging_data.get("level", "WARNING")).upper(),  # type: ignore[arg-type]
            format=str(logging_data.get("format", "structured")).lower(),  # type: ignore[arg-type]
            output_file=logging_data.get("output_file"),
        ),
    )


def _apply_env_overrides(config: OpDocConfig) -> OpDocConfig:
    changes: dict[str, Any] = {}
    if suffix := os.getenv("OPDOC_SUFFIX"):
        changes["suffix"] = suffix
    if (omit_empty := os.getenv("OPDOC_OMIT_EMPTY")) is not None:
        try:
            changes["omit_empty"] = _parse_bool_env(omit_empty)
        except ValueError as e:
            raise ConfigurationError("OPDOC_OMIT_EMPTY", str(e)) from e

    log_changes: dict[str, Any] = {}
    if level := os.getenv("OPDOC_LOG_LEVEL"):
        log_changes["level"] = level.upper()
    if fmt := os.getenv("OPDOC_LOG_FORMAT"):
        log_changes["format"] = fmt.lower()
    if log_changes:
        changes["logging"] = replace(config.logging, **log_changes)

    return replace(config, **changes) if changes else config


__all__ = [
    "DEFAULT_SUFFIX",
    "LoggingConfig",
    "OpDocConfig",
    "clear_config_cache",
    "get_default_config",
    "load_config",
]
