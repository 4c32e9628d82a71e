# xmlwatcher/utils/config.py

"""
Configuration management for the XML watcher

Settings come from environment variables, optionally layered over a YAML or
JSON file named by CONFIG_FILE. Environment values always win.
"""
import os
import json
import yaml
from pathlib import Path
from typing import Dict, Any, Optional, Mapping, Tuple, Union
from dataclasses import dataclass, field, asdict
from urllib.parse import urlsplit, urlunsplit
import logging

from ..errors import ConfigError, WatchDirectoryError

logger = logging.getLogger(__name__)

SUPPORTED_METHODS = ("GET", "POST", "PUT", "PATCH", "DELETE")

# Suffix of the overwrite temp files; never a watched extension
TEMP_SUFFIX = ".tmp"

_TRUE_VALUES = {"true", "1", "yes", "on"}
_FALSE_VALUES = {"false", "0", "no", "off", ""}


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded exponential backoff around webhook dispatch"""
    max_retries: int = 0  # extra attempts; 0 keeps the single-shot behaviour
    backoff: float = 1.0  # seconds before the first retry
    backoff_max: float = 30.0
    retry_on_status: bool = False  # also retry 5xx responses

    @property
    def enabled(self) -> bool:
        return self.max_retries > 0

    def delay_for(self, retry_number: int) -> float:
        """Delay before the given retry (1-based), doubling each time"""
        delay = self.backoff * (2 ** max(retry_number - 1, 0))
        return min(delay, self.backoff_max)


@dataclass(frozen=True)
class WatchConfig:
    """Validated, read-only settings shared by every pipeline stage"""
    webhook_url: str
    watch_dir: Path = Path("/watch")
    webhook_method: str = "POST"
    include_filename: bool = True  # legacy flag, filename is always sent
    include_content: bool = False
    overwrite_with_response: bool = False
    extensions: Tuple[str, ...] = (".xml",)
    settle_delay: float = 0.5  # seconds
    http_timeout: float = 30.0  # seconds
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    suppression_ttl: float = 2.0  # seconds
    max_concurrency: int = 16

    # Logging
    log_level: str = "INFO"
    log_format: str = "text"  # text, json or color
    log_file: Optional[str] = None

    def __post_init__(self):
        # Frozen dataclass, so normalise through object.__setattr__
        if isinstance(self.watch_dir, str):
            object.__setattr__(self, "watch_dir", Path(self.watch_dir))
        object.__setattr__(self, "webhook_method", self.webhook_method.upper())
        object.__setattr__(self, "extensions", normalize_extensions(self.extensions))

    @property
    def overwrite_enabled(self) -> bool:
        """Overwrite only works when the content was sent in the first place"""
        return self.overwrite_with_response and self.include_content

    def validate(self):
        """
        Check the settings that can only be verified against the system

        Raises:
            ConfigError: on a missing URL or bad numeric values
            WatchDirectoryError: if the watch root does not exist
        """
        if not self.webhook_url:
            raise ConfigError("WEBHOOK_URL environment variable is required")
        if self.settle_delay < 0:
            raise ConfigError(f"SETTLE_DELAY must not be negative: {self.settle_delay}")
        if self.http_timeout <= 0:
            raise ConfigError(f"WEBHOOK_TIMEOUT must be positive: {self.http_timeout}")
        if self.suppression_ttl <= 0:
            raise ConfigError(f"SUPPRESSION_TTL must be positive: {self.suppression_ttl}")
        if self.max_concurrency < 1:
            raise ConfigError(f"MAX_CONCURRENCY must be at least 1: {self.max_concurrency}")
        if self.retry.max_retries < 0:
            raise ConfigError(f"WEBHOOK_RETRIES must not be negative: {self.retry.max_retries}")
        if not self.watch_dir.is_dir():
            raise WatchDirectoryError(self.watch_dir)

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary, with URL credentials masked"""
        data = asdict(self)
        data["watch_dir"] = str(self.watch_dir)
        data["extensions"] = list(self.extensions)
        data["webhook_url"] = mask_url(self.webhook_url)
        return data

    def to_json(self, indent: int = 2) -> str:
        """Convert config to JSON string"""
        return json.dumps(self.to_dict(), indent=indent, default=str)


def normalize_extensions(extensions) -> Tuple[str, ...]:
    """Lower-case extensions and make sure each starts with a dot"""
    if isinstance(extensions, str):
        extensions = extensions.split(",")

    normalized = []
    for ext in extensions:
        ext = ext.strip().lower()
        if not ext:
            continue
        if not ext.startswith("."):
            ext = "." + ext
        if ext.endswith(TEMP_SUFFIX):
            raise ConfigError(f"File extension '{ext}' would match overwrite temp files")
        if ext not in normalized:
            normalized.append(ext)

    if not normalized:
        raise ConfigError("At least one file extension must be configured")
    return tuple(normalized)


def mask_url(url: str) -> str:
    """Hide the password part of a URL for logging"""
    parts = urlsplit(url)
    if parts.password is None:
        return url
    netloc = parts.netloc.replace(f":{parts.password}@", ":***@", 1)
    return urlunsplit(parts._replace(netloc=netloc))


def parse_bool(value: Any, key: str = "value") -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE_VALUES:
        return True
    if text in _FALSE_VALUES:
        return False
    raise ConfigError(f"{key} must be a boolean, got '{value}'")


def _parse_number(value: Any, key: str, cast):
    try:
        return cast(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{key} must be a number, got '{value}'") from None


def _load_file(path: Path) -> Dict[str, Any]:
    """Load a YAML or JSON settings file, keys are upper-cased"""
    if not path.exists():
        raise ConfigError(f"Config file '{path}' does not exist")

    try:
        with open(path, 'r', encoding='utf-8') as f:
            if path.suffix.lower() in ['.yaml', '.yml']:
                data = yaml.safe_load(f)
            else:
                data = json.load(f)
    except (OSError, ValueError, yaml.YAMLError) as e:
        raise ConfigError(f"Error loading configuration from {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file '{path}' must contain a mapping")

    logger.info(f"Loaded configuration from {path}")
    return {str(k).upper(): v for k, v in data.items()}


def load_config(env: Optional[Mapping[str, str]] = None,
                path: Union[str, Path, None] = None) -> WatchConfig:
    """
    Build a WatchConfig from environment variables

    Args:
        env: Mapping to read from (defaults to os.environ)
        path: Optional YAML/JSON file; falls back to CONFIG_FILE

    Returns:
        Parsed configuration (not yet validated against the filesystem)

    Raises:
        ConfigError: if a value cannot be parsed or WEBHOOK_URL is missing
    """
    if env is None:
        env = os.environ

    settings: Dict[str, Any] = {}
    config_file = path or env.get("CONFIG_FILE")
    if config_file:
        settings.update(_load_file(Path(config_file)))
    settings.update({k: v for k, v in env.items() if v is not None})

    def get(key: str, default: Any = None) -> Any:
        # An empty variable counts as unset
        value = settings.get(key)
        return default if value is None or value == "" else value

    webhook_url = str(get("WEBHOOK_URL", "")).strip()
    if not webhook_url:
        raise ConfigError("WEBHOOK_URL environment variable is required")

    method = str(get("WEBHOOK_METHOD", "POST")).strip().upper() or "POST"

    retry = RetryPolicy(
        max_retries=_parse_number(get("WEBHOOK_RETRIES", 0), "WEBHOOK_RETRIES", int),
        backoff=_parse_number(get("WEBHOOK_RETRY_BACKOFF", 1.0), "WEBHOOK_RETRY_BACKOFF", float),
        backoff_max=_parse_number(get("WEBHOOK_RETRY_BACKOFF_MAX", 30.0),
                                  "WEBHOOK_RETRY_BACKOFF_MAX", float),
        retry_on_status=parse_bool(get("WEBHOOK_RETRY_ON_STATUS", False),
                                   "WEBHOOK_RETRY_ON_STATUS"),
    )

    return WatchConfig(
        webhook_url=webhook_url,
        watch_dir=Path(get("WATCH_DIR", "/watch")),
        webhook_method=method,
        include_filename=parse_bool(get("INCLUDE_FILENAME", True), "INCLUDE_FILENAME"),
        include_content=parse_bool(get("INCLUDE_CONTENT", False), "INCLUDE_CONTENT"),
        overwrite_with_response=parse_bool(get("OVERWRITE_WITH_RESPONSE", False),
                                           "OVERWRITE_WITH_RESPONSE"),
        extensions=normalize_extensions(get("FILE_EXTENSIONS", ".xml")),
        settle_delay=_parse_number(get("SETTLE_DELAY", 0.5), "SETTLE_DELAY", float),
        http_timeout=_parse_number(get("WEBHOOK_TIMEOUT", 30.0), "WEBHOOK_TIMEOUT", float),
        retry=retry,
        suppression_ttl=_parse_number(get("SUPPRESSION_TTL", 2.0), "SUPPRESSION_TTL", float),
        max_concurrency=_parse_number(get("MAX_CONCURRENCY", 16), "MAX_CONCURRENCY", int),
        log_level=str(get("LOG_LEVEL", "INFO")).upper(),
        log_format=str(get("LOG_FORMAT", "text")).lower(),
        log_file=get("LOG_FILE") or None,
    )
