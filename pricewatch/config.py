"""Configuration loading for the pricewatch service."""

from __future__ import annotations

import os
from copy import deepcopy
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from pricewatch.logging_config import get_logger

LOGGER = get_logger(__name__)

_FALSE_VALUES = {"0", "false", "no", "off"}

DEFAULT_CONFIG_PATH = Path(__file__).with_name("config.yml")

DEFAULT_CONFIG: dict[str, Any] = {
    "database": {"sqlite_path": "shopping.sqlite"},
    "schedule": {
        "poll_seconds": 30,
        "reschedule_seconds": 300,
        "detect_seconds": 30,
        "sweep_hours": 24,
    },
    "scrape": {
        "batch_size": 5,
        "timeout_seconds": 60,
        "navigation_timeout_seconds": 30,
        "close_timeout_seconds": 5,
        "cycle_hours": 24,
        "jitter_minutes": 60,
        "results_dir": "results",
        "user_agent": (
            "Mozilla/5.0 (Macintosh; Intel Mac OS X 10.15; rv:135.0) "
            "Gecko/20100101 Firefox/135.0"
        ),
    },
    "alerts": {"dedup_days": 7},
    "retention": {"days": 90},
    "proxy": None,
    "test_mode": False,
}


def as_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() not in _FALSE_VALUES


def _deep_merge(default: Any, override: Any) -> Any:
    if not isinstance(default, dict) or not isinstance(override, dict):
        return deepcopy(override)

    merged: dict[str, Any] = deepcopy(default)
    for key, value in override.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = deepcopy(value)
    return merged


def load_config(path: Path | None = None) -> dict[str, Any]:
    """Read the YAML configuration at *path* merged over the defaults."""

    if path is None:
        path = Path(os.getenv("PRICEWATCH_CONFIG") or DEFAULT_CONFIG_PATH)
    if path.exists():
        with path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
    else:
        LOGGER.warning("Configuration file %s not found; using defaults", path)
        data = {}

    if not isinstance(data, dict):
        LOGGER.warning("Configuration file %s is not a mapping; using defaults", path)
        data = {}

    return _deep_merge(DEFAULT_CONFIG, data) if data else deepcopy(DEFAULT_CONFIG)


def _number(section: dict[str, Any], key: str, default: float, *, minimum: float = 0) -> float:
    raw = section.get(key, default)
    try:
        value = float(raw)
    except (TypeError, ValueError):
        LOGGER.warning("Invalid value for %s=%r; using %s", key, raw, default)
        return float(default)
    if value < minimum:
        LOGGER.warning("Value for %s=%r below %s; using %s", key, raw, minimum, default)
        return float(default)
    return value


@dataclass(frozen=True)
class Settings:
    """Resolved runtime settings."""

    sqlite_path: str
    poll_seconds: float
    reschedule_seconds: float
    detect_seconds: float
    sweep_hours: float
    batch_size: int
    scrape_timeout: float
    navigation_timeout: float
    close_timeout: float
    cycle_hours: float
    jitter_minutes: float
    results_dir: Path
    user_agent: str | None
    dedup_days: float
    retention_days: float
    proxy: str | None
    test_mode: bool

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> "Settings":
        schedule = config.get("schedule") or {}
        scrape = config.get("scrape") or {}
        defaults_schedule = DEFAULT_CONFIG["schedule"]
        defaults_scrape = DEFAULT_CONFIG["scrape"]

        sqlite_path = os.getenv("PRICEWATCH_DB") or (config.get("database") or {}).get(
            "sqlite_path", DEFAULT_CONFIG["database"]["sqlite_path"]
        )
        proxy = os.getenv("PRICEWATCH_PROXY") or config.get("proxy") or None
        test_mode = as_bool(os.getenv("PRICEWATCH_TEST_MODE"), bool(config.get("test_mode")))

        return cls(
            sqlite_path=str(sqlite_path),
            poll_seconds=_number(schedule, "poll_seconds", defaults_schedule["poll_seconds"], minimum=1),
            reschedule_seconds=_number(
                schedule, "reschedule_seconds", defaults_schedule["reschedule_seconds"], minimum=1
            ),
            detect_seconds=_number(schedule, "detect_seconds", defaults_schedule["detect_seconds"], minimum=1),
            sweep_hours=_number(schedule, "sweep_hours", defaults_schedule["sweep_hours"], minimum=0.01),
            batch_size=int(_number(scrape, "batch_size", defaults_scrape["batch_size"], minimum=1)),
            scrape_timeout=_number(scrape, "timeout_seconds", defaults_scrape["timeout_seconds"], minimum=1),
            navigation_timeout=_number(
                scrape,
                "navigation_timeout_seconds",
                defaults_scrape["navigation_timeout_seconds"],
                minimum=1,
            ),
            close_timeout=_number(
                scrape, "close_timeout_seconds", defaults_scrape["close_timeout_seconds"], minimum=0.1
            ),
            cycle_hours=_number(scrape, "cycle_hours", defaults_scrape["cycle_hours"], minimum=0.01),
            jitter_minutes=_number(scrape, "jitter_minutes", defaults_scrape["jitter_minutes"]),
            results_dir=Path(scrape.get("results_dir") or defaults_scrape["results_dir"]),
            user_agent=scrape.get("user_agent") or None,
            dedup_days=_number(config.get("alerts") or {}, "dedup_days", DEFAULT_CONFIG["alerts"]["dedup_days"]),
            retention_days=_number(
                config.get("retention") or {}, "days", DEFAULT_CONFIG["retention"]["days"], minimum=1
            ),
            proxy=str(proxy) if proxy else None,
            test_mode=test_mode,
        )


def load_settings(path: Path | None = None) -> Settings:
    """Load configuration from disk and environment into :class:`Settings`."""

    return Settings.from_config(load_config(path))
