"""Configuration loading and management for my-ready."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from my_ready.models import (
    DEFAULT_DEPRECATION_KEYWORDS,
    DEFAULT_SLOW_QUERY_THRESHOLD,
    MonitorConfig,
)
from my_ready.monitor.classifier import KEYWORD_SETS, keyword_set

CONFIG_FILENAME = "my-ready.yaml"

DEFAULT_STRING_TYPES = ("varchar", "char", "text", "tinytext", "mediumtext", "longtext")
DEFAULT_SAMPLE_LIMIT = 5


class ConfigurationError(ValueError):
    """Required settings are missing or invalid."""


@dataclass
class ScanConfig:
    """Configuration for the trailing-space scan."""

    schema: str | None = None
    sample_limit: int = DEFAULT_SAMPLE_LIMIT
    string_types: tuple[str, ...] = DEFAULT_STRING_TYPES
    exclude_tables: set[str] = field(default_factory=set)
    include_tables: set[str] | None = None  # None = every base table


@dataclass
class ConnectionConfig:
    host: str = "localhost"
    port: int = 3306
    user: str = "root"
    password: str = ""
    database: str | None = None


@dataclass
class Config:
    """Complete configuration for my-ready."""

    monitor: MonitorConfig = field(default_factory=MonitorConfig)
    scan: ScanConfig = field(default_factory=ScanConfig)


def find_config_file() -> str | None:
    """Search for my-ready.yaml in cwd, then home dir.

    Returns:
        Path to config file if found, None otherwise.
    """
    cwd_config = Path.cwd() / CONFIG_FILENAME
    if cwd_config.is_file():
        return str(cwd_config)

    home_config = Path.home() / CONFIG_FILENAME
    if home_config.is_file():
        return str(home_config)

    return None


def load_config(config_path: str | None = None, auto_discover: bool = True) -> Config:
    """Load configuration from YAML file.

    Args:
        config_path: Explicit path to config file. If None and auto_discover is True,
                     searches default locations.
        auto_discover: If True and config_path is None, search for config file.

    Returns:
        Config object. Returns default config if no file found.

    Raises:
        ConfigurationError: the file is missing, unparsable or has invalid values.
    """
    if config_path is None and auto_discover:
        config_path = find_config_file()

    if config_path is None:
        return Config()

    if not os.path.isfile(config_path):
        raise ConfigurationError(f"Config file not found: {config_path}")

    try:
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Invalid YAML in {config_path}: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigurationError(f"{config_path}: top level must be a mapping")
    return _parse_config(data)


def _parse_config(data: dict) -> Config:
    """Parse YAML data into Config object."""
    config = Config()
    for section in ("monitor", "scan"):
        if data.get(section) is not None and not isinstance(data[section], dict):
            raise ConfigurationError(f"'{section}' section must be a mapping")
    if data.get("monitor"):
        config.monitor = _parse_monitor_config(data["monitor"])
    if data.get("scan"):
        config.scan = _parse_scan_config(data["scan"])
    return config


def _table_names(data: dict, key: str) -> set[str]:
    """Read a table list; a bare string names a single table."""
    value = data.get(key)
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ConfigurationError(f"{key} must be a list of table names: {value!r}")
    return set(value)


def _parse_monitor_config(data: dict) -> MonitorConfig:
    """Parse the monitor section."""
    if "deprecation_keywords" in data and "keyword_set" in data:
        raise ConfigurationError("Use either 'keyword_set' or 'deprecation_keywords', not both")

    if "keyword_set" in data:
        name = data["keyword_set"]
        try:
            keywords = keyword_set(name)
        except (KeyError, TypeError) as exc:
            known = ", ".join(sorted(KEYWORD_SETS))
            raise ConfigurationError(f"Unknown keyword_set '{name}' (known: {known})") from exc
    elif "deprecation_keywords" in data:
        keywords = tuple(str(k) for k in data["deprecation_keywords"] or ())
        if not keywords:
            raise ConfigurationError("deprecation_keywords must not be empty")
    else:
        keywords = DEFAULT_DEPRECATION_KEYWORDS

    threshold = data.get("slow_query_threshold_ms", DEFAULT_SLOW_QUERY_THRESHOLD)
    try:
        threshold = float(threshold)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"slow_query_threshold_ms must be a number: {threshold!r}") from exc
    if threshold < 0:
        raise ConfigurationError("slow_query_threshold_ms must not be negative")

    return MonitorConfig(
        log_warnings=bool(data.get("log_warnings", True)),
        track_slow_queries=bool(data.get("track_slow_queries", True)),
        slow_query_threshold=threshold,
        deprecation_keywords=keywords,
    )


def _parse_scan_config(data: dict) -> ScanConfig:
    """Parse the scan section."""
    sample_limit = data.get("sample_limit", DEFAULT_SAMPLE_LIMIT)
    if not isinstance(sample_limit, int) or sample_limit < 0:
        raise ConfigurationError(f"sample_limit must be a non-negative integer: {sample_limit!r}")

    string_types = tuple(str(t).lower() for t in data.get("string_types") or DEFAULT_STRING_TYPES)

    include_only = None
    if data.get("include_tables") is not None:
        include_only = _table_names(data, "include_tables")

    exclude = set()
    if data.get("exclude_tables") is not None:
        exclude = _table_names(data, "exclude_tables")

    return ScanConfig(
        schema=data.get("schema"),
        sample_limit=sample_limit,
        string_types=string_types,
        exclude_tables=exclude,
        include_tables=include_only,
    )


def connection_from_env(environ: dict | None = None) -> ConnectionConfig:
    """Read DB_HOST, DB_PORT, DB_USER, DB_PASSWORD and DB_NAME."""
    env = os.environ if environ is None else environ
    port = env.get("DB_PORT") or "3306"
    try:
        port_num = int(port)
    except ValueError as exc:
        raise ConfigurationError(f"DB_PORT must be an integer: {port!r}") from exc
    return ConnectionConfig(
        host=env.get("DB_HOST") or "localhost",
        port=port_num,
        user=env.get("DB_USER") or "root",
        password=env.get("DB_PASSWORD") or "",
        database=env.get("DB_NAME") or None,
    )


def merge_cli_with_config(
    config: Config,
    env_conn: ConnectionConfig,
    host: str | None = None,
    port: int | None = None,
    user: str | None = None,
    password: str | None = None,
    schema: str | None = None,
    sample_limit: int | None = None,
    cli_exclude: set[str] | None = None,
    cli_include_only: set[str] | None = None,
) -> tuple[ConnectionConfig, ScanConfig]:
    """Merge CLI arguments with config file and environment settings.

    CLI arguments take precedence over the environment, which takes
    precedence over the config file. The target schema is required.

    Raises:
        ConfigurationError: no schema could be resolved.
    """
    scan = config.scan
    target = schema or env_conn.database or scan.schema
    if not target:
        raise ConfigurationError(
            "A target schema is required (--schema, DB_NAME, or scan.schema in my-ready.yaml)"
        )

    conn_cfg = ConnectionConfig(
        host=host or env_conn.host,
        port=port or env_conn.port,
        user=user or env_conn.user,
        password=password if password is not None else env_conn.password,
        database=target,
    )

    if sample_limit is not None and sample_limit < 0:
        raise ConfigurationError("--sample-limit must not be negative")

    scan_cfg = ScanConfig(
        schema=target,
        sample_limit=scan.sample_limit if sample_limit is None else sample_limit,
        string_types=scan.string_types,
        exclude_tables=scan.exclude_tables | (cli_exclude or set()),
        include_tables=cli_include_only if cli_include_only is not None else scan.include_tables,
    )
    return conn_cfg, scan_cfg
