"""Progress reporting for frame rendering and encoding loops."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from time import perf_counter
from typing import Callable, Optional

ProgressCallback = Callable[[int], None]


def _format_duration(seconds: float) -> str:
    """Return a compact human-readable duration string."""
    total_seconds = int(round(seconds))
    if total_seconds <= 0:
        return "<1s"
    minutes, seconds_remaining = divmod(total_seconds, 60)
    if minutes:
        return f"{minutes}m{seconds_remaining:02d}s"
    return f"{seconds_remaining}s"


def eta_string(elapsed: float, completed: int, total: int) -> str:
    """Format an ETA string given elapsed time and progress counters."""
    if completed <= 0 or total <= 0 or completed > total or elapsed <= 0.0:
        return "ETA estimating"

    remaining = max(0.0, elapsed * total / completed - elapsed)
    finish_time = datetime.now() + timedelta(seconds=remaining)
    return f"ETA {_format_duration(remaining)} (finish {finish_time.strftime('%H:%M:%S')})"


class ProgressTracker:
    """Forward clamped, non-decreasing percentages to a callback and the log.

    The log line is emitted roughly every 5% of ``total`` steps; the callback
    sees every update.
    """

    def __init__(
        self,
        total: int,
        callback: Optional[ProgressCallback],
        *,
        logger: logging.Logger,
        label: str,
    ) -> None:
        self.total = max(1, int(total))
        self.callback = callback
        self.logger = logger
        self.label = label
        self.percent = 0
        self._log_interval = max(1, self.total // 20)
        self._start = perf_counter()
        self._closed = False

    def reset_total(self, total: int) -> None:
        """Replace the step count once it becomes known."""
        self.total = max(1, int(total))
        self._log_interval = max(1, self.total // 20)

    def close(self) -> None:
        """Stop forwarding updates (used on cancellation)."""
        self._closed = True

    def report_percent(self, percent: float) -> None:
        if self._closed:
            return
        value = max(0, min(100, int(round(percent))))
        if value < self.percent:
            return
        self.percent = value
        if self.callback is not None:
            self.callback(value)

    def step(self, completed: int) -> None:
        """Record ``completed`` of ``total`` steps."""
        if self._closed:
            return
        self.report_percent(100.0 * completed / self.total)
        if completed % self._log_interval == 0 or completed == self.total:
            elapsed = perf_counter() - self._start
            self.logger.info(
                "%s progress: %s/%s frames (%0.1f%%, %s)",
                self.label,
                completed,
                self.total,
                100.0 * completed / self.total,
                eta_string(elapsed, completed, self.total),
            )

    def finish(self) -> None:
        if self._closed:
            return
        if self.percent < 100:
            self.percent = 100
            if self.callback is not None:
                self.callback(100)


__all__ = ["ProgressCallback", "ProgressTracker", "eta_string"]
