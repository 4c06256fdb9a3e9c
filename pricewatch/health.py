"""Health monitoring for the scrape pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
import json
import time
from pathlib import Path
from typing import Any

from pricewatch.logging_config import get_logger

LOGGER = get_logger(__name__)


class HealthState(str, Enum):
    """Overall scraper health classification."""

    HEALTHY = "healthy"
    SUSPECT = "suspect"
    BLOCKED = "blocked"


@dataclass
class HealthMonitor:
    """Tracks failure streaks across ticks and logs structured health events."""

    log_path: Path
    browser_threshold: tuple[int, int] = (2, 5)
    miss_threshold: tuple[int, int] = (3, 8)
    suspect_delay: float = 5.0
    blocked_delay: float = 15.0
    state: HealthState = field(init=False, default=HealthState.HEALTHY)

    def __post_init__(self) -> None:
        self.browser_errors = 0
        self.miss_streak = 0
        self.log_path.parent.mkdir(parents=True, exist_ok=True)

    def _log(self, event_type: str, message: str, **details: Any) -> None:
        entry = {
            "ts": time.time(),
            "state": self.state.value,
            "event": event_type,
            "message": message,
            "details": details,
        }
        with self.log_path.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(entry, ensure_ascii=False) + "\n")

    def _evaluate_state(self) -> None:
        prev = self.state
        if self.browser_errors >= self.browser_threshold[1] or self.miss_streak >= self.miss_threshold[1]:
            self.state = HealthState.BLOCKED
        elif self.browser_errors >= self.browser_threshold[0] or self.miss_streak >= self.miss_threshold[0]:
            self.state = HealthState.SUSPECT
        else:
            self.state = HealthState.HEALTHY

        if self.state != prev:
            LOGGER.warning(
                "Scrape health %s -> %s | browser_errors=%d | miss_streak=%d",
                prev.value,
                self.state.value,
                self.browser_errors,
                self.miss_streak,
            )
            self._log(
                "state_change",
                f"{prev.value} -> {self.state.value}",
                browser_errors=self.browser_errors,
                miss_streak=self.miss_streak,
            )

    def record_price(self, *, task_id: int, price: float) -> None:
        self.browser_errors = 0
        self.miss_streak = 0
        if self.state != HealthState.HEALTHY:
            self._log("recovered", f"Recovered on task {task_id}", price=price)
        self._evaluate_state()

    def record_extraction_miss(self, *, task_id: int, url: str) -> None:
        self.miss_streak += 1
        self.browser_errors = max(0, self.browser_errors - 1)
        self._log("extraction_miss", f"No price for task {task_id}", url=url, miss_streak=self.miss_streak)
        self._evaluate_state()

    def record_browser_error(self, *, task_id: int, reason: str) -> None:
        self.browser_errors += 1
        self._log("browser_error", reason, task_id=task_id, browser_errors=self.browser_errors)
        self._evaluate_state()

    def recommended_extra_delay(self) -> float:
        """Seconds to pause before the next scrape while failures persist."""

        if self.state == HealthState.SUSPECT:
            return self.suspect_delay
        if self.state == HealthState.BLOCKED:
            return self.blocked_delay
        return 0.0
