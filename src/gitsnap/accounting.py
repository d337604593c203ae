from __future__ import annotations

import threading
import time
from collections import Counter
from dataclasses import dataclass, field
from typing import Any

from gitsnap.logging import logger


@dataclass
class RunStats:
    """Counters and timing for one run.

    Every mutation goes through a single lock so workers can share one
    instance. Counters only ever grow.

    Attributes:
        processed: Files written to the artifact.
        skipped: Entries rejected by the classifier plus files that failed to read.
        skipped_by_reason: `skipped` broken down by reason value (`unreadable`
            for read failures).
    """

    processed: int = 0
    skipped: int = 0
    skipped_by_reason: Counter[str] = field(default_factory=Counter)
    started_at: float = field(default_factory=time.perf_counter)
    finished_at: float | None = None
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def record_processed(self) -> None:
        with self._lock:
            self.processed += 1

    def record_skipped(self, reason: str) -> None:
        with self._lock:
            self.skipped += 1
            self.skipped_by_reason[str(reason)] += 1

    def finish(self) -> None:
        with self._lock:
            if self.finished_at is None:
                self.finished_at = time.perf_counter()

    @property
    def elapsed(self) -> float:
        """Wall-clock seconds since the run started (frozen once finished)."""
        end = self.finished_at if self.finished_at is not None else time.perf_counter()
        return end - self.started_at

    def as_dict(self) -> dict[str, Any]:
        with self._lock:
            return {
                "processed": self.processed,
                "skipped": self.skipped,
                "skipped_by_reason": dict(self.skipped_by_reason),
                "elapsed_seconds": round(self.elapsed, 3),
            }

    def report(self, *, debug: bool = False) -> None:
        """Log the run summary, and a warning when nothing was processed.

        Args:
            debug (bool): log the summary at info level instead of debug level
        """
        summary = self.as_dict()
        if summary["processed"] == 0:
            logger.warning("No files were processed")
        log = logger.info if debug else logger.debug
        log("Processed %d files, skipped %d files", summary["processed"], summary["skipped"], **summary)
