"""
Configuration loader.

Builds the process configuration from three sources, in increasing
precedence:

1. Program values (package version, git commit and commit message)
2. A YAML configuration file
3. Environment variables prefixed with HOUSTON_

Environment Variables:
    HOUSTON_*: Any configuration value, e.g. HOUSTON_SERVER_URL -> server.url
    ENVIRONMENT: Name of the active environment (sets "environment")
    DEBUG: When set, raises console logging to debug (sets "log.console")
"""

import logging
import math
import os
from collections.abc import Mapping
from importlib import metadata
from pathlib import Path
from typing import Any

import yaml

from fc_common.errors import ConfigError

from .config import Config

logger = logging.getLogger(__name__)

# Prefix required for environment variables to be picked up
ENVIRONMENT_PREFIX = "HOUSTON"

# Distribution name used to look up the program version
DISTRIBUTION_NAME = "flightcheck"

# Repository checkout holding the .git directory, when running from source
SOURCE_ROOT = Path(__file__).resolve().parent.parent


def configuration_paths() -> list[Path]:
    """Return the well-known configuration file locations, in search order."""
    return [
        Path.cwd() / "config.yaml",
        Path("/etc/houston/config.yaml"),
    ]


def string_to_dot(name: str) -> str:
    """
    Transform an environment variable name to a dot path.

    The prefix segment is dropped and a literal "env" segment is renamed to
    "environment".

    Example:
        HOUSTON_LOG_LEVEL -> log.level
        HOUSTON_ENV_NAME -> environment.name
    """
    segments = name.lower().split("_")[1:]
    return ".".join("environment" if s == "env" else s for s in segments)


def parse_value(raw: str) -> int | float | str:
    """Return raw as a number when it parses fully as one, else unchanged."""
    stripped = raw.strip()
    if not stripped or "_" in stripped:
        return raw

    try:
        return int(stripped)
    except ValueError:
        pass

    try:
        number = float(stripped)
    except ValueError:
        return raw

    # NaN and infinities are not usable configuration numbers
    if not math.isfinite(number):
        return raw
    return number


def get_environment_config(environ: Mapping[str, str] | None = None) -> Config:
    """
    Build a config from environment variables.

    Args:
        environ: Environment mapping (default: os.environ)

    Returns:
        Frozen Config
    """
    environ = os.environ if environ is None else environ
    config = Config()

    for key in sorted(environ):
        if not key.startswith(f"{ENVIRONMENT_PREFIX}_"):
            continue
        path = string_to_dot(key)
        if not path:
            continue
        config.set(path, parse_value(environ[key]))

    # Special case variables outside the prefix convention
    if environ.get("ENVIRONMENT") is not None:
        config.set("environment", environ["ENVIRONMENT"])

    if environ.get("DEBUG") is not None:
        config.set("log.console", "debug")

    return config.freeze()


def _read_git_file(name: str) -> str | None:
    path = SOURCE_ROOT / ".git" / name
    try:
        if path.is_file():
            return path.read_text(encoding="utf-8").strip()
    except OSError:
        pass  # Not a checkout we can read, nothing to report
    return None


def get_program_config() -> Config:
    """
    Build a config with program values such as version and git commit.

    Values that cannot be determined (not installed, not a git checkout) are
    left unset.

    Returns:
        Frozen Config
    """
    config = Config()

    try:
        version = metadata.version(DISTRIBUTION_NAME)
    except metadata.PackageNotFoundError:
        version = None

    if version:
        parts = (version.split("-")[0].split(".") + ["0", "0"])[:3]
        config.set("houston.version", version)
        config.set("houston.major", parse_value(parts[0]))
        config.set("houston.minor", parse_value(parts[1]))
        config.set("houston.patch", parse_value(parts[2]))

    commit = _read_git_file("ORIG_HEAD")
    if commit:
        config.set("houston.commit", commit)

    change = _read_git_file("COMMIT_EDITMSG")
    if change:
        config.set("houston.change", change)

    return config.freeze()


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            content = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid configuration file {path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"Cannot read configuration file {path}: {e}") from e

    if content is None:
        return {}
    if not isinstance(content, dict):
        raise ConfigError(f"Configuration file {path} must contain a mapping")
    return content


def get_file_config(path: str | os.PathLike | None = None) -> Config:
    """
    Read configuration from a YAML file.

    Args:
        path: Explicit file path (absolute or relative to the working
              directory). When omitted, the well-known locations are
              searched and the first existing file is used.

    Returns:
        Frozen Config (empty when no file was found by search)

    Raises:
        ConfigError: If an explicit file does not exist or cannot be parsed
    """
    config = Config()

    if path is not None:
        file_path = Path(path)
        if not file_path.is_absolute():
            file_path = Path.cwd() / file_path
        if not file_path.is_file():
            raise ConfigError(f"Configuration file not found: {file_path}")
        logger.debug(f"Loading configuration from {file_path}")
        return config.merge(_read_yaml(file_path)).freeze()

    for possible in configuration_paths():
        if possible.is_file():
            logger.debug(f"Loading configuration from {possible}")
            config.merge(_read_yaml(possible))
            break

    return config.freeze()


def get_config(path: str | os.PathLike | None = None) -> Config:
    """
    Build the configuration snapshot from every source.

    Args:
        path: Optional explicit configuration file path

    Returns:
        Frozen Config

    Raises:
        ConfigError: If an explicit file does not exist or cannot be parsed
    """
    program = get_program_config()
    file = get_file_config(path)
    environment = get_environment_config()

    return (
        Config()
        .merge(program.get("."))
        .merge(file.get("."))
        .merge(environment.get("."))
        .freeze()
    )
