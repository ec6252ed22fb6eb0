"""Timing instrument used to stamp test steps."""

import time
from datetime import UTC, datetime, timedelta


class InstrumentationLog:
    """Stopwatch that records a UTC start time and a monotonic elapsed time."""

    def __init__(self, start: bool = True) -> None:
        """Create the instrument, starting it unless ``start`` is False."""
        self._start_time: datetime | None = None
        self._started_at: float | None = None
        self._stopped_at: float | None = None
        if start:
            self.restart()

    @property
    def start_time(self) -> datetime:
        """UTC time of the last (re)start."""
        if self._start_time is None:
            raise RuntimeError("Instrumentation has not been started")
        return self._start_time

    @property
    def elapsed_time(self) -> timedelta:
        """Time elapsed since the last (re)start, or until ``stop``."""
        if self._started_at is None:
            return timedelta()
        end = self._stopped_at if self._stopped_at is not None else time.monotonic()
        return timedelta(seconds=end - self._started_at)

    @property
    def is_running(self) -> bool:
        """Whether the stopwatch is running."""
        return self._started_at is not None and self._stopped_at is None

    def restart(self) -> None:
        """Reset the start time and elapsed time to now."""
        self._start_time = datetime.now(UTC)
        self._started_at = time.monotonic()
        self._stopped_at = None

    def stop(self) -> None:
        """Freeze the elapsed time."""
        if self.is_running:
            self._stopped_at = time.monotonic()

    def __enter__(self) -> "InstrumentationLog":
        """Use the instrument as a context manager."""
        return self

    def __exit__(self, *exc_info: object) -> None:
        """Stop the instrument on exit."""
        self.stop()
