"""Configuration file loader for puppetgraph.

Supports two formats:

- ``puppetgraph.toml`` with settings under a ``[puppetgraph]`` table
- ``pyproject.toml`` with settings under ``[tool.puppetgraph]``

Discovery order:

1. Explicit path from ``--config`` or ``PUPPETGRAPH_CONFIG``
2. ``puppetgraph.toml`` in the current directory
3. ``pyproject.toml`` in the current directory, if it has a
   ``[tool.puppetgraph]`` table

Precedence: defaults < config file < CLI options.

Example (``puppetgraph.toml``)::

    [puppetgraph]
    forge_url = "https://forgeapi.puppet.com"
    max_depth = 8
    batch_size = 5
    batch_pause = 0.1
    timeout = 30
"""

from __future__ import annotations

import tomli as tomllib
from pathlib import Path
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Tuple

from puppetgraph.exceptions import ConfigError
from puppetgraph.utils.logger import get_logger
from puppetgraph.constants import (
    DEFAULT_BATCH_PAUSE,
    DEFAULT_BATCH_SIZE,
    DEFAULT_MAX_DEPTH,
    DEFAULT_TIMEOUT,
    FORGE_API_URL,
)

logger = get_logger("config")

#: Environment variable holding an explicit configuration path.
CONFIG_ENV_VAR = "PUPPETGRAPH_CONFIG"

_SECTION = "puppetgraph"
_CONFIG_FILENAME = "puppetgraph.toml"


@dataclass
class PuppetGraphConfig:
    """Parsed and validated puppetgraph configuration.

    All fields have defaults, so an empty file or no file at all is valid.

    Attributes:
        forge_url: Root of the Forge API.
        max_depth: Depth below the declared modules at which the walk stops.
        batch_size: Modules fetched concurrently per warm window.
        batch_pause: Seconds to wait between warm windows.
        timeout: HTTP timeout in seconds.
        source_path: File the values came from, or ``None`` for defaults.
    """

    forge_url: str = FORGE_API_URL
    max_depth: int = DEFAULT_MAX_DEPTH
    batch_size: int = DEFAULT_BATCH_SIZE
    batch_pause: float = DEFAULT_BATCH_PAUSE
    timeout: int = DEFAULT_TIMEOUT

    source_path: Optional[Path] = field(default=None, repr=False)

    def to_log_dict(self) -> Dict[str, Any]:
        """Return option values (without ``source_path``) for debug logging."""
        return {name: getattr(self, name) for name in _OPTIONS}


# ---------------------------------------------------------------------------
# Option validation
# ---------------------------------------------------------------------------


def _is_int(value: Any) -> bool:
    # bool is an int subclass; ``max_depth = true`` is a mistake, not 1
    return isinstance(value, int) and not isinstance(value, bool)


def _is_number(value: Any) -> bool:
    return _is_int(value) or isinstance(value, float)


def _is_url(value: Any) -> bool:
    return isinstance(value, str) and value.startswith(("http://", "https://"))


# option -> (type check, minimum, description used in errors)
_OPTIONS: Dict[str, Tuple[Callable[[Any], bool], Optional[float], str]] = {
    "forge_url": (_is_url, None, "an http(s) URL"),
    "max_depth": (_is_int, 1, "an integer"),
    "batch_size": (_is_int, 1, "an integer"),
    "batch_pause": (_is_number, 0, "a number"),
    "timeout": (_is_int, 1, "an integer"),
}


def _parse_section(section: Dict[str, Any], *, config_path: str) -> PuppetGraphConfig:
    """Validate a ``[puppetgraph]`` table and build the config from it.

    Raises:
        ConfigError: On unknown keys, wrong types or out-of-range values.
    """
    unknown = set(section) - set(_OPTIONS)
    if unknown:
        raise ConfigError(
            f"Unknown configuration keys: {', '.join(sorted(unknown))}",
            config_path=config_path,
        )

    values: Dict[str, Any] = {}
    for name, value in section.items():
        check, minimum, expected = _OPTIONS[name]
        if not check(value):
            raise ConfigError(
                f"{name} must be {expected}, got {type(value).__name__}",
                config_path=config_path,
                option=name,
            )
        if minimum is not None and value < minimum:
            raise ConfigError(
                f"{name} must be at least {minimum:g}, got {value}",
                config_path=config_path,
                option=name,
            )
        values[name] = float(value) if name == "batch_pause" else value

    if "forge_url" in values:
        values["forge_url"] = values["forge_url"].rstrip("/")

    return PuppetGraphConfig(**values)


# ---------------------------------------------------------------------------
# Discovery and loading
# ---------------------------------------------------------------------------


def discover_config_file(explicit_path: Optional[Path] = None) -> Optional[Path]:
    """Find the configuration file to load.

    Args:
        explicit_path: Path given on the command line or through
            ``PUPPETGRAPH_CONFIG``. When set, it must exist.

    Returns:
        Resolved path, or ``None`` if nothing applies.

    Raises:
        ConfigError: ``explicit_path`` does not exist.
    """
    if explicit_path is not None:
        resolved = explicit_path.resolve()
        if not resolved.is_file():
            raise ConfigError(
                f"Configuration file not found: {explicit_path}",
                config_path=str(explicit_path),
            )
        logger.debug("Using explicit config: %s", resolved)
        return resolved

    cwd = Path.cwd()

    candidate = cwd / _CONFIG_FILENAME
    if candidate.is_file():
        logger.debug("Found %s: %s", _CONFIG_FILENAME, candidate)
        return candidate

    pyproject = cwd / "pyproject.toml"
    if pyproject.is_file() and _pyproject_has_section(pyproject):
        logger.debug("Found [tool.%s] in %s", _SECTION, pyproject)
        return pyproject

    logger.debug("No configuration file found")
    return None


def _pyproject_has_section(path: Path) -> bool:
    # An unrelated, broken pyproject.toml should not stop puppetgraph
    try:
        raw = _read_toml(path)
    except ConfigError as exc:
        logger.debug("Ignoring unreadable %s: %s", path, exc)
        return False
    return _SECTION in raw.get("tool", {})


def load_config(config_path: Optional[Path] = None) -> PuppetGraphConfig:
    """Load and validate the puppetgraph configuration.

    Args:
        config_path: Explicit file, or ``None`` to auto-discover (see
            :func:`discover_config_file`).

    Returns:
        Validated :class:`PuppetGraphConfig`; defaults when no file applies.

    Raises:
        ConfigError: The file cannot be read or parsed, or fails validation.
    """
    resolved = discover_config_file(config_path)
    if resolved is None:
        return PuppetGraphConfig()

    logger.info("Loading configuration from %s", resolved)
    raw = _read_toml(resolved)

    if resolved.name == "pyproject.toml":
        section = raw.get("tool", {}).get(_SECTION, {})
    else:
        section = raw.get(_SECTION, {})

    if not isinstance(section, dict):
        raise ConfigError(
            f"[{_SECTION}] must be a table",
            config_path=str(resolved),
        )

    config = _parse_section(section, config_path=str(resolved))
    config.source_path = resolved

    logger.debug("Loaded configuration: %s", config.to_log_dict())
    return config


def _read_toml(path: Path) -> Dict[str, Any]:
    """Parse a TOML file.

    Raises:
        ConfigError: The file cannot be read or is not valid TOML.
    """
    try:
        with open(path, "rb") as fh:
            return tomllib.load(fh)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(
            f"Invalid TOML in {path.name}: {exc}",
            config_path=str(path),
        ) from exc
    except OSError as exc:
        raise ConfigError(
            f"Cannot read configuration file {path}: {exc}",
            config_path=str(path),
        ) from exc
