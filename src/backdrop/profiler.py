from __future__ import annotations
import threading
import time
from collections import deque
from contextlib import contextmanager

from .logging import get_logger

_profiler = None
_profiler_lock = threading.Lock()


def get_profiler():
    global _profiler
    with _profiler_lock:
        if _profiler is None:
            _profiler = Profiler()
        return _profiler


class Profiler:
    """Per-stage timings shared by the capture, worker and UI threads."""

    def __init__(self, ema_alpha=0.1, maxlen=100):
        self._samples = {}
        self._ema = {}
        self._lock = threading.Lock()
        self.ema_alpha = ema_alpha
        self.maxlen = maxlen
        self.logger = get_logger("Profiler")

    @contextmanager
    def record(self, name: str):
        start_t = time.perf_counter()
        try:
            yield
        finally:
            self.add(name, time.perf_counter() - start_t)

    def add(self, name: str, dt: float):
        with self._lock:
            if name not in self._samples:
                self._samples[name] = deque(maxlen=self.maxlen)
            self._samples[name].append(dt)

            prev = self._ema.get(name)
            if prev is None:
                self._ema[name] = dt
            else:
                self._ema[name] = self.ema_alpha * dt + (1.0 - self.ema_alpha) * prev

    def get_timings(self):
        with self._lock:
            return self._ema.copy()

    def get_peak(self, name: str) -> float:
        """Slowest sample still in the window for `name` (0.0 if unseen)."""
        with self._lock:
            samples = self._samples.get(name)
            return max(samples) if samples else 0.0

    def log_stats(self):
        timings = self.get_timings()
        if not timings:
            return
        stats = [f"{k}: {v*1000:.2f}ms" for k, v in sorted(timings.items())]
        if "frame" in timings:
            stats.append(f"frame_peak: {self.get_peak('frame')*1000:.2f}ms")
        self.logger.info(" | ".join(stats))
