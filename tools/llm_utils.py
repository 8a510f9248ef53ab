# tools/llm_utils.py
from __future__ import annotations

import os
import threading
import time
from typing import Callable, Optional

from tools.log_sink import LogFn, log


def _now() -> float:
    return time.monotonic()


def _sleep_ms(ms: int) -> None:
    if ms > 0:
        time.sleep(ms / 1000.0)


def _env_int(name: str, default: int) -> int:
    try:
        v = int(os.getenv(name, "").strip())
        return v if v >= 0 else default
    except ValueError:
        return default


class RateGate:
    """
    Minimum-interval gate between consecutive calls to one upstream API.

    Only the last-call timestamp is shared; the lock makes the check-and-stamp
    atomic when the pipeline runs a worker pool.
    """

    def __init__(
        self,
        min_interval_ms: Optional[int] = None,
        *,
        clock: Callable[[], float] = _now,
        sleep: Callable[[int], None] = _sleep_ms,
    ) -> None:
        if min_interval_ms is None:
            min_interval_ms = _env_int("LLM_MIN_INTERVAL_MS", 1000)
        self.min_interval_ms = min_interval_ms
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()
        self._last_call_ts: Optional[float] = None

    def wait(self, *, tag: str = "llm", logger: Optional[LogFn] = None) -> int:
        """Block until the interval has passed, stamp the call, return the ms waited."""
        with self._lock:
            wait_ms = 0
            if self._last_call_ts is not None:
                elapsed_ms = int((self._clock() - self._last_call_ts) * 1000)
                wait_ms = max(0, self.min_interval_ms - elapsed_ms)
            if wait_ms > 0:
                log(f"[llm-utils] throttle {tag}: waiting {wait_ms}ms", logger)
                self._sleep(wait_ms)
            self._last_call_ts = self._clock()
            return wait_ms


# Process-wide gate shared by every client talking to the same upstream.
_global_gate: Optional[RateGate] = None
_global_gate_lock = threading.Lock()


def global_gate() -> RateGate:
    global _global_gate
    with _global_gate_lock:
        if _global_gate is None:
            _global_gate = RateGate()
        return _global_gate
