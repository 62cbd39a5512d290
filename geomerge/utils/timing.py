"""Timing of reconciliation runs."""
import time
from typing import Optional
from geomerge.utils.logging import log_structured


class Timer:
    """Context manager timing a run, with an optional throughput."""

    def __init__(self, operation: str):
        """
        Initialize timer.

        Args:
            operation: Name of the run being timed
        """
        self.operation = operation
        self.start = None
        self.elapsed = None
        self.count: Optional[int] = None

    def __enter__(self):
        self.start = time.monotonic()
        return self

    def __exit__(self, *args):
        self.elapsed = time.monotonic() - self.start
        fields = {"operation": self.operation, "elapsed_seconds": round(self.elapsed, 3)}
        if self.count is not None:
            fields["rows"] = self.count
            fields["rows_per_second"] = round(self.count / self.elapsed, 1) if self.elapsed else None
        log_structured("info", f"{self.operation} completed", **fields)
