# docmerge/progress.py

import sys
import threading
from typing import Callable, List, Optional, TextIO, Tuple


ProgressCallback = Callable[[int, int], None]


class ProgressReporter:
    """
    Run-scoped progress counter shared by all merge workers.

    ``advance()`` is an atomic increment; each call publishes the new
    ``(completed, total)`` pair to every registered observer, from whatever
    thread did the work. Observers that drive a UI must marshal to their own
    thread.
    """

    def __init__(self, callback: Optional[ProgressCallback] = None):
        self._lock = threading.Lock()
        self._publish_lock = threading.Lock()
        self._processed = 0
        self._total = 0
        self._observers: List[ProgressCallback] = []
        if callback is not None:
            self._observers.append(callback)

    def subscribe(self, callback: ProgressCallback) -> None:
        self._observers.append(callback)

    def reset(self, total: int) -> None:
        with self._lock:
            self._processed = 0
            self._total = total

    def advance(self) -> int:
        # the publish lock orders notifications; observers may read the counters
        with self._publish_lock:
            with self._lock:
                self._processed += 1
                completed, total = self._processed, self._total
            for observer in self._observers:
                observer(completed, total)
        return completed

    @property
    def processed(self) -> int:
        with self._lock:
            return self._processed

    @property
    def total(self) -> int:
        with self._lock:
            return self._total

    def snapshot(self) -> Tuple[int, int]:
        with self._lock:
            return self._processed, self._total


class ConsoleProgressBar:
    """Text progress bar, written to stderr by default: ``[█████     ] 50%``."""

    def __init__(self, width: int = 50, stream: Optional[TextIO] = None):
        self.width = width
        self.stream = stream or sys.stderr

    def __call__(self, completed: int, total: int) -> None:
        ratio = completed / total if total else 1.0
        filled = min(self.width, int(ratio * self.width))
        bar = "█" * filled + " " * (self.width - filled)
        self.stream.write(f"\r[{bar}] {ratio * 100:.0f}% ({completed}/{total})")
        if completed >= total:
            self.stream.write("\n")
        self.stream.flush()
