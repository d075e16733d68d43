"""Configuration loading and validation for the downloader."""

import os
import re
from dataclasses import dataclass, field
from pathlib import Path

import yaml
from slugify import slugify

from .downloader import DEFAULT_MAX_PAGES
from .logger import DEFAULT_BACKUP_COUNT, DEFAULT_LOG_LEVEL, DEFAULT_MAX_BYTES, get_logger
from .utils.http import DEFAULT_USER_AGENT
from .utils.retry import DEFAULT_MAX_ATTEMPTS

logger = get_logger(__name__)

# "$$" is a literal dollar sign; "$NAME" and "${NAME}" are variables
_ENV_REFERENCE = re.compile(r"\$(?:(\$)|\{([A-Za-z_]\w*)\}|([A-Za-z_]\w*))")


class ConfigurationError(Exception):
    """Raised when configuration is invalid."""

    pass


@dataclass
class HttpSettings:
    """Settings for the HTTP client."""

    timeout: float = 30
    user_agent: str = DEFAULT_USER_AGENT
    follow_redirects: bool = True
    verify_ssl: bool = True
    proxy: str | None = None
    max_attempts: int = DEFAULT_MAX_ATTEMPTS


@dataclass
class LoggingSettings:
    """Settings passed to setup_logging()."""

    log_level: str = DEFAULT_LOG_LEVEL
    log_file: str | None = None
    log_format: str = "text"
    max_file_size: int = DEFAULT_MAX_BYTES
    backup_count: int = DEFAULT_BACKUP_COUNT


@dataclass
class AppConfig:
    """Contents of config.yaml."""

    http: HttpSettings = field(default_factory=HttpSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)
    series_file: str = "series.yaml"
    output_dir: str = "."
    concurrency: int = 1
    config_dir: Path = field(default_factory=Path.cwd)

    @property
    def series_path(self) -> Path:
        return self.config_dir / self.series_file

    @property
    def output_path(self) -> Path:
        return self.config_dir / self.output_dir


@dataclass
class Series:
    """One webcomic to download in batch mode."""

    id: str
    name: str
    url: str
    image_selector: str
    next_selector: str
    output_file: str = ""
    max_pages: int = DEFAULT_MAX_PAGES
    headers: dict[str, str] = field(default_factory=dict)
    image_output_dir: str | None = None
    enabled: bool = True

    def __post_init__(self):
        """Apply defaults and environment variable overrides."""
        if not self.output_file:
            self.output_file = f"{slugify(self.name) or self.id}.pdf"

        env_prefix = f"WCDL_SERIES_{self.id.upper().replace('-', '_')}"

        url_override = os.environ.get(f"{env_prefix}_URL")
        if url_override:
            logger.debug(f"Overriding URL for {self.id} from environment")
            self.url = url_override

        enabled_override = os.environ.get(f"{env_prefix}_ENABLED")
        if enabled_override is not None:
            self.enabled = enabled_override.lower() in ("true", "1", "yes")
            logger.debug(f"Overriding enabled for {self.id}: {self.enabled}")

        max_pages_override = os.environ.get(f"{env_prefix}_MAX_PAGES")
        if max_pages_override is not None:
            try:
                self.max_pages = int(max_pages_override)
            except ValueError as e:
                raise ConfigurationError(
                    f"{env_prefix}_MAX_PAGES must be an integer, got {max_pages_override!r}"
                ) from e


@dataclass
class SeriesConfig:
    """All configured series."""

    series: list[Series]

    def get_enabled_series(self) -> list[Series]:
        """Return only enabled series."""
        return [s for s in self.series if s.enabled]

    def get_series_by_id(self, series_id: str) -> Series | None:
        """Find a series by its ID."""
        for series in self.series:
            if series.id == series_id:
                return series
        return None


def _read_yaml(path: Path, what: str):
    try:
        with open(path, encoding="utf-8") as f:
            return yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {what}: {e}") from e


def load_config(config_path: Path | None) -> AppConfig:
    """
    Load config.yaml.

    Args:
        config_path: Path to the file, or None for built-in defaults

    Returns:
        AppConfig, with relative paths anchored at the file's directory

    Raises:
        ConfigurationError: If the file is missing or invalid
    """
    if config_path is None:
        return AppConfig()

    if not config_path.exists():
        raise ConfigurationError(f"Config file not found: {config_path}")

    raw = _read_yaml(config_path, "config file") or {}
    if not isinstance(raw, dict):
        raise ConfigurationError("Config file must contain a mapping")

    try:
        http = HttpSettings(**(raw.get("http") or {}))
        logging_settings = LoggingSettings(**(raw.get("logging") or {}))
    except TypeError as e:
        raise ConfigurationError(f"Unknown setting in config file: {e}") from e

    if http.max_attempts < 1:
        raise ConfigurationError("http.max_attempts must be at least 1")

    concurrency = raw.get("concurrency", 1)
    if not isinstance(concurrency, int) or concurrency < 1:
        raise ConfigurationError("concurrency must be a positive integer")

    return AppConfig(
        http=http,
        logging=logging_settings,
        series_file=raw.get("series_file", "series.yaml"),
        output_dir=raw.get("output_dir", "."),
        concurrency=concurrency,
        config_dir=config_path.parent,
    )


def load_series_config(series_path: Path) -> SeriesConfig:
    """
    Load and validate the series file.

    Args:
        series_path: Path to series.yaml

    Returns:
        SeriesConfig with validated series

    Raises:
        ConfigurationError: If the file is missing or a series is invalid
    """
    if not series_path.exists():
        raise ConfigurationError(f"Series file not found: {series_path}")

    logger.info(f"Loading series from {series_path}")

    raw_config = _read_yaml(series_path, "series file")
    if not raw_config:
        raise ConfigurationError("Series file is empty")

    defaults = raw_config.get("defaults") or {}
    raw_series = raw_config.get("series") or []
    if not raw_series:
        raise ConfigurationError("No series defined in configuration")

    series = []
    seen_ids = set()
    for i, raw in enumerate(raw_series):
        name = raw.get("name", f"series #{i + 1}") if isinstance(raw, dict) else f"series #{i + 1}"
        try:
            parsed = _parse_series(raw, defaults)
        except ConfigurationError as e:
            raise ConfigurationError(f"Invalid series '{name}': {e}") from e

        if parsed.id in seen_ids:
            raise ConfigurationError(f"Duplicate series id: {parsed.id}")
        seen_ids.add(parsed.id)
        series.append(parsed)

    enabled = len([s for s in series if s.enabled])
    logger.info(f"Loaded {len(series)} series ({enabled} enabled)")

    return SeriesConfig(series=series)


def _parse_series(raw, defaults: dict) -> Series:
    """Parse a single series from raw config."""
    if not isinstance(raw, dict):
        raise ConfigurationError("Expected a mapping")

    for required in ["id", "url", "image_selector", "next_selector"]:
        if not raw.get(required):
            raise ConfigurationError(f"Missing required field: {required}")

    headers = dict(defaults.get("headers") or {})
    headers.update(raw.get("headers") or {})

    max_pages = raw.get("max_pages", defaults.get("max_pages", DEFAULT_MAX_PAGES))
    if not isinstance(max_pages, int) or max_pages < 0:
        raise ConfigurationError(f"max_pages must be a non-negative integer, got {max_pages!r}")

    return Series(
        id=str(raw["id"]),
        name=raw.get("name", str(raw["id"])),
        url=raw["url"],
        image_selector=raw["image_selector"],
        next_selector=raw["next_selector"],
        output_file=raw.get("output_file", ""),
        max_pages=max_pages,
        headers=expand_headers(headers),
        image_output_dir=raw.get("image_output_dir", defaults.get("image_output_dir")),
        enabled=raw.get("enabled", True),
    )


def expand_headers(headers: dict) -> dict[str, str]:
    """
    Expand ``$VAR`` and ``${VAR}`` references in header values.

    ``$$`` stands for a literal ``$``, e.g. ``$$Version=1`` for a cookie
    attribute. A ``$`` that doesn't start a variable name is kept as-is.

    Raises:
        ConfigurationError: If a referenced variable is not set
    """

    def substitute(match: re.Match, name: str) -> str:
        if match.group(1):
            return "$"
        variable = match.group(2) or match.group(3)
        if variable not in os.environ:
            raise ConfigurationError(
                f"Header {name!r} references an unset environment variable: {variable}"
            )
        return os.environ[variable]

    expanded = {}
    for name, value in headers.items():
        expanded[str(name)] = _ENV_REFERENCE.sub(
            lambda match, name=name: substitute(match, name), str(value)
        )
    return expanded
