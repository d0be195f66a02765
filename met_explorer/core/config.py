"""Settings for Met Explorer.

Values are resolved in this order, first match wins:

1. environment variables (``api.timeout_seconds`` -> ``API_TIMEOUT_SECONDS``),
   including any loaded from a ``.env`` in the working directory
2. a YAML or TOML file, given explicitly or found in ``CONFIG_SEARCH_PATHS``
3. ``DEFAULTS``

``MET_API_TIMEOUT_MS`` is also honoured as a timeout override in milliseconds.
"""

from __future__ import annotations

import copy
import logging
import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import yaml
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

DEFAULTS: Dict[str, Dict[str, Any]] = {
    "logging": {
        "level": "INFO",
        "file": "logs/met_explorer.log",
        "format": "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    },
    "api": {
        "base_url": "https://collectionapi.metmuseum.org/public/collection/v1",
        "timeout_seconds": 10,
        "rate_limit_per_second": 80,
        "window_seconds": 1.0,
        "user_agent": "met-explorer/0.1",
    },
    "search": {
        "page_size": 12,
        "tool_page_size": 24,
        "max_page_size": 100,
        "hydration_concurrency": 4,
    },
    "departments": {"cache_ttl_seconds": 24 * 60 * 60},
    "publisher": {"source": "met-explorer-app"},
}

CONFIG_SEARCH_PATHS = tuple(
    Path(directory) / f"met_explorer.{suffix}"
    for directory in ("config", ".")
    for suffix in ("yaml", "yml", "toml")
)

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
MET_DOCUMENTED_RATE_LIMIT = 80
HIGH_HYDRATION_CONCURRENCY = 16

# key, parser, wording used in the error message
POSITIVE_SETTINGS = (
    ("api.timeout_seconds", float, "a positive number"),
    ("api.window_seconds", float, "a positive number"),
    ("api.rate_limit_per_second", int, "a positive integer"),
    ("search.page_size", int, "a positive integer"),
    ("search.tool_page_size", int, "a positive integer"),
    ("search.max_page_size", int, "a positive integer"),
    ("search.hydration_concurrency", int, "a positive integer"),
)


def _load_yaml(stream: Any) -> Dict[str, Any]:
    return yaml.safe_load(stream) or {}


_LOADERS: Dict[str, Callable[[Any], Dict[str, Any]]] = {
    ".yaml": _load_yaml,
    ".yml": _load_yaml,
    ".toml": tomllib.load,
}


def read_settings_file(path: Path) -> Dict[str, Any]:
    """Parse a settings file, returning ``{}`` when it is missing or unreadable."""
    if not path.exists():
        logger.warning("Config file not found: %s", path)
        return {}

    loader = _LOADERS.get(path.suffix.lower())
    if loader is None:
        logger.error("Unsupported config format: %s", path)
        return {}

    try:
        with path.open("rb") as stream:
            data = loader(stream)
    except (OSError, yaml.YAMLError, tomllib.TOMLDecodeError) as e:
        logger.error("Failed to load config file %s: %s", path, e)
        return {}

    logger.info("Loaded settings from %s", path)
    return data


def with_defaults(loaded: Dict[str, Any]) -> Dict[str, Any]:
    """Overlay ``loaded`` section by section onto a copy of ``DEFAULTS``."""
    merged: Dict[str, Any] = copy.deepcopy(DEFAULTS)
    for section, values in loaded.items():
        if values is None and section in merged:
            continue
        if isinstance(values, dict) and isinstance(merged.get(section), dict):
            merged[section].update(values)
        else:
            merged[section] = values
    return merged


def _lookup(tree: Dict[str, Any], dotted: str) -> Any:
    node: Any = tree
    for part in dotted.split("."):
        if not isinstance(node, dict) or part not in node:
            raise KeyError(dotted)
        node = node[part]
    return node


@dataclass
class ValidationResult:
    """Errors make a configuration unusable; warnings are advisory."""

    is_valid: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def add_error(self, message: str) -> None:
        self.errors.append(message)
        self.is_valid = False

    def add_warning(self, message: str) -> None:
        self.warnings.append(message)

    def __str__(self) -> str:
        if not self.errors and not self.warnings:
            return "Configuration is valid."
        lines: List[str] = []
        for title, messages in (("Errors:", self.errors), ("Warnings:", self.warnings)):
            if messages:
                lines.append(title)
                lines.extend(f"  - {message}" for message in messages)
        return "\n".join(lines)


class Config:
    """Layered settings with dot-notation access."""

    def __init__(self, config_file: Optional[str] = None):
        self.logger = logging.getLogger(self.__class__.__name__)
        self._config_file = config_file

        dotenv_path = Path(".env")
        if dotenv_path.exists():
            load_dotenv(dotenv_path)
            self.logger.info("Loaded environment variables from %s", dotenv_path)

        self._config: Dict[str, Any] = with_defaults(self._read(config_file))

    def _read(self, config_file: Optional[str]) -> Dict[str, Any]:
        if config_file:
            return read_settings_file(Path(config_file))
        for candidate in CONFIG_SEARCH_PATHS:
            if candidate.exists():
                return read_settings_file(candidate)
        self.logger.debug("No settings file found, using defaults and environment")
        return {}

    def get(self, key: str, default: Any = None) -> Any:
        """Look up ``key`` ("section.name"); environment values come back as strings."""
        from_env = os.getenv(key.upper().replace(".", "_"))
        if from_env is not None:
            return from_env
        try:
            return _lookup(self._config, key)
        except KeyError:
            return default

    def get_int(self, key: str, default: int = 0) -> int:
        return int(self.get(key, default))

    def get_float(self, key: str, default: float = 0.0) -> float:
        return float(self.get(key, default))

    def set(self, key: str, value: Any) -> None:
        """Override a setting for this process, creating sections as needed."""
        *sections, name = key.split(".")
        node = self._config
        for section in sections:
            node = node.setdefault(section, {})
        node[name] = value
        self.logger.debug("Set config %s = %r", key, value)

    def get_section(self, section: str) -> Dict[str, Any]:
        return self._config.get(section, {})

    @property
    def api_timeout_seconds(self) -> float:
        """Per-call timeout; a positive ``MET_API_TIMEOUT_MS`` wins over settings."""
        raw_ms = os.getenv("MET_API_TIMEOUT_MS")
        if raw_ms:
            try:
                timeout_ms = float(raw_ms)
            except ValueError:
                timeout_ms = 0.0
            if timeout_ms > 0:
                return timeout_ms / 1000
            self.logger.warning("Ignoring invalid MET_API_TIMEOUT_MS=%r", raw_ms)
        return self.get_float("api.timeout_seconds", 10.0)

    def to_dict(self) -> Dict[str, Any]:
        return self._config.copy()

    def reload(self, config_file: Optional[str] = None) -> None:
        """Re-read settings, from ``config_file`` or the file used originally."""
        if config_file:
            self._config_file = config_file
        self._config = with_defaults(self._read(self._config_file))
        self.logger.info("Configuration reloaded")

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate(self) -> ValidationResult:
        """Check every setting; problems are also logged."""
        result = ValidationResult(is_valid=True)
        self._check_logging(result)
        self._check_api(result)
        self._check_positive(result)
        if result.is_valid:
            self._check_limits(result)
        self._check_departments(result)

        for error in result.errors:
            self.logger.error("Config validation error: %s", error)
        for warning in result.warnings:
            self.logger.warning("Config validation warning: %s", warning)
        return result

    def _check_logging(self, result: ValidationResult) -> None:
        level = str(self.get("logging.level", "INFO"))
        if level.upper() not in LOG_LEVELS:
            result.add_error(
                f"Invalid logging level '{level}'. Must be one of: {', '.join(LOG_LEVELS)}"
            )

        log_file = self.get("logging.file", "")
        if log_file and not Path(log_file).parent.exists():
            result.add_warning(f"Log directory does not exist: {Path(log_file).parent}")

    def _check_api(self, result: ValidationResult) -> None:
        if not str(self.get("api.base_url", "")).startswith(("http://", "https://")):
            result.add_error("api.base_url must be an http(s) URL")

    def _check_positive(self, result: ValidationResult) -> None:
        for key, parse, wording in POSITIVE_SETTINGS:
            try:
                ok = parse(self.get(key)) > 0
            except (TypeError, ValueError):
                ok = False
            if not ok:
                result.add_error(f"{key} must be {wording}")

    def _check_limits(self, result: ValidationResult) -> None:
        if self.get_int("search.page_size") > self.get_int("search.max_page_size"):
            result.add_error("search.page_size cannot exceed search.max_page_size")
        if self.get_int("api.rate_limit_per_second") > MET_DOCUMENTED_RATE_LIMIT:
            result.add_warning(
                "api.rate_limit_per_second is above the Met's documented "
                f"{MET_DOCUMENTED_RATE_LIMIT} requests/second"
            )
        if self.get_int("search.hydration_concurrency") > HIGH_HYDRATION_CONCURRENCY:
            result.add_warning(
                "search.hydration_concurrency is high, hydration will mostly wait on "
                "the rate limiter"
            )

    def _check_departments(self, result: ValidationResult) -> None:
        try:
            ttl = int(self.get("departments.cache_ttl_seconds", 0))
        except (TypeError, ValueError):
            result.add_error("departments.cache_ttl_seconds must be a non-negative integer")
            return
        if ttl < 0:
            result.add_error("departments.cache_ttl_seconds must be non-negative")

    def validate_and_raise(self) -> None:
        """Raise ``ValueError`` listing every problem when validation fails."""
        result = self.validate()
        if not result.is_valid:
            raise ValueError(f"Invalid configuration:\n{result}")


_global_config: Optional[Config] = None


def get_config(config_file: Optional[str] = None) -> Config:
    """Process-wide settings; ``config_file`` only matters on the first call."""
    global _global_config
    if _global_config is None:
        _global_config = Config(config_file)
    return _global_config


def reload_config(config_file: Optional[str] = None) -> None:
    global _global_config
    if _global_config is None:
        _global_config = Config(config_file)
    else:
        _global_config.reload(config_file)
