"""In-flight task registry preventing duplicate dispatch."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator


class InFlightRegistry:
    """Task ids currently being executed by this process.

    Owned by the scheduler and passed down the dispatch path. Contents do not
    survive a restart.
    """

    def __init__(self) -> None:
        self._task_ids: set[int] = set()

    def __contains__(self, task_id: object) -> bool:
        return task_id in self._task_ids

    def __len__(self) -> int:
        return len(self._task_ids)

    def claim(self, task_id: int) -> bool:
        """Insert *task_id*; False when it is already in flight."""

        if task_id in self._task_ids:
            return False
        self._task_ids.add(task_id)
        return True

    def release(self, task_id: int) -> None:
        self._task_ids.discard(task_id)

    def snapshot(self) -> frozenset[int]:
        return frozenset(self._task_ids)

    @contextmanager
    def hold(self, task_id: int) -> Iterator[bool]:
        """Claim *task_id* for the block, releasing on every exit path.

        Yields False (and releases nothing) when another holder has it.
        """

        claimed = self.claim(task_id)
        try:
            yield claimed
        finally:
            if claimed:
                self.release(task_id)
