"""Screenshot and markup files captured by scrape attempts."""

from __future__ import annotations

import os
import time
from dataclasses import dataclass
from pathlib import Path
from tempfile import NamedTemporaryFile


@dataclass(frozen=True)
class ArtifactPaths:
    screenshot_path: str | None
    html_path: str | None


class ArtifactStore:
    """Writes and removes artifact files under a results directory."""

    def __init__(self, results_dir: str | Path) -> None:
        self.results_dir = Path(results_dir)

    def save(self, prefix: str, screenshot: bytes | None, html: str | None) -> ArtifactPaths:
        """Persist *screenshot* and *html* as ``<prefix>_<ms>.png`` / ``.html``."""

        self.results_dir.mkdir(parents=True, exist_ok=True)
        stamp = int(time.time() * 1000)
        screenshot_path = None
        html_path = None
        if screenshot is not None:
            screenshot_path = self._write(f"{prefix}_{stamp}.png", screenshot)
        if html is not None:
            html_path = self._write(f"{prefix}_{stamp}.html", html.encode("utf-8"))
        return ArtifactPaths(screenshot_path=screenshot_path, html_path=html_path)

    def save_for_task(self, task_id: int, screenshot: bytes | None, html: str | None) -> ArtifactPaths:
        return self.save(f"task_{task_id}", screenshot, html)

    def _write(self, name: str, payload: bytes) -> str:
        target = self.results_dir / name
        with NamedTemporaryFile(mode="wb", dir=str(self.results_dir), delete=False) as handle:
            handle.write(payload)
            handle.flush()
            os.fsync(handle.fileno())
            tmp_name = handle.name
        os.replace(tmp_name, target)
        return str(target)

    @staticmethod
    def delete(path: str | None) -> bool:
        """Remove *path*; returns False when it was already gone."""

        if not path:
            return False
        try:
            os.remove(path)
        except FileNotFoundError:
            return False
        return True
