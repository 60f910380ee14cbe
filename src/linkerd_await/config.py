"""
Configuration management for linkerd-await.

Configuration is assembled once at startup from three layers, lowest
precedence first:

- Built-in defaults
- An optional TOML file named by LINKERD_AWAIT_CONFIG (table ``[await]``)
- Command-line flags (and LINKERD_AWAIT_VERBOSE)

The disable override (LINKERD_AWAIT_DISABLED, then LINKERD_DISABLED) is
captured here as well, so nothing re-reads the environment mid-run.
"""

from __future__ import annotations

import logging
import os
import pathlib
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Mapping

import tomli

from .constants import (
    ADMIN_HOST,
    DEFAULT_ADMIN_PORT,
    DEFAULT_BACKOFF,
    ENV_CONFIG,
    ENV_DISABLED,
    ENV_DISABLED_LEGACY,
)
from .duration import parse_duration
from .errors import InvalidConfiguration, InvalidDuration

_logger = logging.getLogger(__name__)

VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}

# ---------------------------------------------------------------------------
# Configuration Dataclasses
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FileConfig:
    """Values read from the optional TOML file. None means "not set"."""

    port: int | None = None
    backoff: timedelta | None = None
    timeout: timedelta | None = None
    timeout_fatal: bool | None = None
    verbose: bool = False
    log_level: str | None = None


@dataclass(frozen=True)
class AwaitConfig:
    """Complete, validated configuration for one invocation."""

    port: int = DEFAULT_ADMIN_PORT
    backoff: timedelta = field(default_factory=lambda: parse_duration(DEFAULT_BACKOFF))
    timeout: timedelta | None = None
    timeout_fatal: bool = True
    shutdown: bool = False
    verbose: bool = False
    cmd: str | None = None
    args: tuple[str, ...] = ()
    disabled_reason: str | None = None
    log_level: str | None = None

    def __post_init__(self):
        _validate_port(self.port, "port")
        if self.shutdown and not self.cmd:
            raise InvalidConfiguration("--shutdown requires a command to run")

    @property
    def authority(self) -> str:
        """host:port of the proxy admin server."""
        return f"{ADMIN_HOST}:{self.port}"


# ---------------------------------------------------------------------------
# Validation Helpers
# ---------------------------------------------------------------------------


def _validate_port(port: Any, field_name: str) -> int:
    if isinstance(port, bool) or not isinstance(port, int):
        raise InvalidConfiguration(f"{field_name} must be an integer, got {port!r}")
    if not (1 <= port <= 65535):
        raise InvalidConfiguration(f"{field_name} {port} out of valid range (1-65535)")
    return port


def _as_bool(value: Any, field_name: str) -> bool:
    if not isinstance(value, bool):
        raise InvalidConfiguration(f"{field_name} must be true or false, got {value!r}")
    return value


def _as_duration(value: Any, field_name: str) -> timedelta:
    if not isinstance(value, str):
        raise InvalidConfiguration(f"{field_name} must be a duration string, got {value!r}")
    try:
        return parse_duration(value)
    except InvalidDuration as e:
        raise InvalidConfiguration(f"{field_name}: {e}") from e


def normalize_log_level(level: str) -> str:
    """
    Normalizes and validates a log level name.

    Returns the uppercase level, or "WARNING" if the name is unknown.
    """
    normalized = str(level).strip().upper()
    if normalized not in VALID_LOG_LEVELS:
        _logger.warning("Invalid log_level '%s', using WARNING", level)
        return "WARNING"
    return normalized


# ---------------------------------------------------------------------------
# Environment
# ---------------------------------------------------------------------------


def disabled_reason(environ: Mapping[str, str] | None = None) -> str | None:
    """
    Return why the readiness check is disabled, or None.

    LINKERD_AWAIT_DISABLED takes priority over LINKERD_DISABLED; empty
    values are treated as unset.
    """
    env = os.environ if environ is None else environ
    for name in (ENV_DISABLED, ENV_DISABLED_LEGACY):
        value = env.get(name)
        if value:
            return value
    return None


# ---------------------------------------------------------------------------
# Configuration Loading
# ---------------------------------------------------------------------------


def load_file_config(path: pathlib.Path) -> FileConfig:
    """
    Loads defaults from a TOML file.

    Expected TOML:
        [await]
        port = 4191
        backoff = "1s"
        timeout = "2m"
        timeout_fatal = true
        verbose = false
        log_level = "INFO"

    Raises:
        InvalidConfiguration: if the file is missing, unreadable, malformed,
            or holds values of the wrong type.
    """
    try:
        with open(path, "rb") as f:
            loaded = tomli.load(f)
    except tomli.TOMLDecodeError as e:
        raise InvalidConfiguration(f"Invalid TOML syntax in config file {path}: {e}") from e
    except OSError as e:
        raise InvalidConfiguration(f"Error reading config file {path}: {e}") from e

    _logger.debug("Loaded configuration from: %s", path)

    section = loaded.get("await", {})
    if not isinstance(section, dict):
        raise InvalidConfiguration(f"[await] in {path} must be a table")

    values: dict[str, Any] = {}
    for key, value in section.items():
        if key == "port":
            values["port"] = _validate_port(value, "await.port")
        elif key in ("backoff", "timeout"):
            values[key] = _as_duration(value, f"await.{key}")
        elif key in ("timeout_fatal", "verbose"):
            values[key] = _as_bool(value, f"await.{key}")
        elif key == "log_level":
            values["log_level"] = normalize_log_level(value)
        else:
            _logger.warning("Ignoring unknown key await.%s in %s", key, path)

    return FileConfig(**values)


def load_config(
    *,
    port: int | None = None,
    backoff: timedelta | None = None,
    timeout: timedelta | None = None,
    timeout_fatal: bool | None = None,
    shutdown: bool = False,
    verbose: bool = False,
    cmd: str | None = None,
    args: list[str] | tuple[str, ...] = (),
    environ: Mapping[str, str] | None = None,
) -> AwaitConfig:
    """
    Builds the AwaitConfig for this invocation.

    Keyword arguments are command-line values; None means the flag was not
    given, so the config file value (or the built-in default) applies.

    Raises:
        InvalidConfiguration: on an invalid file or an invalid combination
            of options.
    """
    env = os.environ if environ is None else environ

    file_config = FileConfig()
    config_path = env.get(ENV_CONFIG)
    if config_path:
        file_config = load_file_config(pathlib.Path(config_path).expanduser())

    return AwaitConfig(
        port=_first(port, file_config.port, DEFAULT_ADMIN_PORT),
        backoff=_first(backoff, file_config.backoff, parse_duration(DEFAULT_BACKOFF)),
        timeout=_first(timeout, file_config.timeout, None),
        timeout_fatal=_first(timeout_fatal, file_config.timeout_fatal, True),
        shutdown=shutdown,
        verbose=verbose or file_config.verbose,
        cmd=cmd,
        args=tuple(args),
        disabled_reason=disabled_reason(env),
        log_level=file_config.log_level,
    )


def _first(*values):
    """First value that is not None."""
    for value in values:
        if value is not None:
            return value
    return None
