"""
app/config.py

Application-level configuration helpers.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parents[1]
DEFAULT_BENCHMARK_RULES_PATH = PROJECT_ROOT / "config" / "benchmarks.json"


def load_env_files() -> None:
    """
    Load simple KEY=VALUE pairs from `.env` and `.env.local` (if present).
    Existing process environment variables are not overwritten.
    """

    for filename in (".env", ".env.local"):
        env_path = PROJECT_ROOT / filename
        if not env_path.exists():
            continue

        for raw_line in env_path.read_text(encoding="utf-8").splitlines():
            line = raw_line.strip()
            if not line or line.startswith("#") or "=" not in line:
                continue

            key, value = line.split("=", 1)
            key = key.strip()
            value = value.strip().strip('"').strip("'")
            if key and key not in os.environ:
                os.environ[key] = value


@lru_cache(maxsize=1)
def _load_env_once() -> None:
    """
    Ensure project `.env` files are loaded once before reading app settings.
    """

    load_env_files()


def _get_bool_env(name: str, default: bool) -> bool:
    """
    Read a boolean from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    return raw_value.strip().lower() in {"1", "true", "yes", "on"}


def _get_int_env(name: str, default: int) -> int:
    """
    Read an integer from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return int(raw_value)
    except ValueError:
        return default


def _get_float_env(name: str, default: float) -> float:
    """
    Read a float from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return float(raw_value)
    except ValueError:
        return default


def _get_str_env(name: str, default: str) -> str:
    """
    Read a string from environment variables with fallback.
    """

    _load_env_once()
    value = os.getenv(name)
    if value is None:
        return default
    stripped = value.strip()
    return stripped if stripped else default


def _get_optional_str_env(name: str) -> str | None:
    """
    Read an optional string value from environment variables.
    """

    _load_env_once()
    value = os.getenv(name)
    if value is None:
        return None
    stripped = value.strip()
    return stripped if stripped else None


def _get_json_mapping_env(name: str) -> dict[str, str]:
    """
    Read a flat JSON object of strings; malformed values are ignored with a warning.
    """

    raw_value = _get_optional_str_env(name)
    if raw_value is None:
        return {}
    try:
        parsed = json.loads(raw_value)
    except json.JSONDecodeError:
        logger.warning("Ignoring %s: value is not valid JSON", name)
        return {}
    if not isinstance(parsed, dict):
        logger.warning("Ignoring %s: expected a JSON object", name)
        return {}
    return {
        str(key): str(value)
        for key, value in parsed.items()
        if isinstance(value, str) and value.strip()
    }


@dataclass(frozen=True)
class ExternalHTTPSettings:
    """
    Shared HTTP behavior settings for external connectors.
    """

    timeout_seconds: float = 15.0
    max_retries: int = 3
    backoff_initial_seconds: float = 0.5
    backoff_multiplier: float = 2.0
    rate_limit_per_second: float = 5.0


@dataclass(frozen=True)
class SheetSourceSettings:
    """
    Published spreadsheet (CSV export) source settings.
    """

    csv_url: str | None = None
    column_overrides: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class DashboardSettings:
    """
    Runtime settings for the dashboard pipeline and API.
    """

    benchmark_rules_path: Path = DEFAULT_BENCHMARK_RULES_PATH
    refresh_interval_minutes: int = 15
    default_row_limit: int = 10
    max_row_limit: int = 500
    log_validation_errors: bool = True
    max_validation_errors: int = 500


@lru_cache(maxsize=1)
def get_external_http_settings() -> ExternalHTTPSettings:
    """
    Return shared connector HTTP settings from environment variables.
    """

    return ExternalHTTPSettings(
        timeout_seconds=max(1.0, _get_float_env("EXTERNAL_HTTP_TIMEOUT_SECONDS", 15.0)),
        max_retries=max(0, _get_int_env("EXTERNAL_HTTP_MAX_RETRIES", 3)),
        backoff_initial_seconds=max(0.1, _get_float_env("EXTERNAL_HTTP_BACKOFF_INITIAL_SECONDS", 0.5)),
        backoff_multiplier=max(1.0, _get_float_env("EXTERNAL_HTTP_BACKOFF_MULTIPLIER", 2.0)),
        rate_limit_per_second=max(0.1, _get_float_env("EXTERNAL_HTTP_RATE_LIMIT_PER_SECOND", 5.0)),
    )


@lru_cache(maxsize=1)
def get_sheet_source_settings() -> SheetSourceSettings:
    """
    Return spreadsheet source settings from environment variables.
    """

    return SheetSourceSettings(
        csv_url=_get_optional_str_env("SHEET_CSV_URL"),
        column_overrides=_get_json_mapping_env("SHEET_COLUMN_OVERRIDES"),
    )


@lru_cache(maxsize=1)
def get_dashboard_settings() -> DashboardSettings:
    """
    Return dashboard pipeline settings from environment variables.
    """

    rules_path = _get_optional_str_env("BENCHMARK_RULES_PATH")
    default_row_limit = max(1, _get_int_env("DASHBOARD_DEFAULT_ROW_LIMIT", 10))
    return DashboardSettings(
        benchmark_rules_path=Path(rules_path) if rules_path else DEFAULT_BENCHMARK_RULES_PATH,
        refresh_interval_minutes=max(0, _get_int_env("DASHBOARD_REFRESH_MINUTES", 15)),
        default_row_limit=default_row_limit,
        max_row_limit=max(default_row_limit, _get_int_env("DASHBOARD_MAX_ROW_LIMIT", 500)),
        log_validation_errors=_get_bool_env("DASHBOARD_LOG_VALIDATION_ERRORS", True),
        max_validation_errors=max(1, _get_int_env("DASHBOARD_MAX_VALIDATION_ERRORS", 500)),
    )
