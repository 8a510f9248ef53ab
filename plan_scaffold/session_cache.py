# plan_scaffold/session_cache.py
from __future__ import annotations

import os
import threading
import time
from collections import OrderedDict
from typing import Callable, Optional, Tuple

from tools.log_sink import LogFn, log


def _env_number(name: str, default: float) -> float:
    try:
        v = float(os.getenv(name, "").strip())
        return v if v > 0 else default
    except ValueError:
        return default


class SessionCache:
    """
    Finished project archives keyed by session id.

    Entries expire `ttl_s` seconds after they were stored and the cache keeps
    at most `max_entries`, evicting the least recently used. Reads do not remove
    entries, so a download can be retried.
    """

    def __init__(
        self,
        ttl_s: Optional[float] = None,
        max_entries: Optional[int] = None,
        *,
        clock: Callable[[], float] = time.monotonic,
        logger: Optional[LogFn] = None,
    ) -> None:
        self.ttl_s = ttl_s if ttl_s is not None else _env_number("SESSION_TTL_S", 3600)
        self.max_entries = max_entries if max_entries is not None else int(_env_number("SESSION_MAX_ENTRIES", 32))
        if self.max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self._clock = clock
        self._logger = logger
        self._lock = threading.Lock()
        self._entries: "OrderedDict[str, Tuple[float, bytes]]" = OrderedDict()

    def put(self, session_id: str, payload: bytes) -> None:
        with self._lock:
            self._purge_locked()
            self._entries[session_id] = (self._clock(), payload)
            self._entries.move_to_end(session_id)
            while len(self._entries) > self.max_entries:
                evicted, _ = self._entries.popitem(last=False)
                log(f"[session] evicted (lru): {evicted}", self._logger)
        log(f"[session] stored {session_id} ({len(payload)} bytes)", self._logger)

    def get(self, session_id: str) -> Optional[bytes]:
        with self._lock:
            item = self._entries.get(session_id)
            if item is None:
                return None
            stored_at, payload = item
            if self._expired(stored_at):
                del self._entries[session_id]
                log(f"[session] expired: {session_id}", self._logger)
                return None
            self._entries.move_to_end(session_id)
            return payload

    def evict(self, session_id: str) -> bool:
        with self._lock:
            return self._entries.pop(session_id, None) is not None

    def purge(self) -> int:
        """Drop every expired entry; returns how many were removed."""
        with self._lock:
            return self._purge_locked()

    def __contains__(self, session_id: object) -> bool:
        return isinstance(session_id, str) and self.get(session_id) is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _expired(self, stored_at: float) -> bool:
        return self._clock() - stored_at >= self.ttl_s

    def _purge_locked(self) -> int:
        stale = [sid for sid, (ts, _) in self._entries.items() if self._expired(ts)]
        for sid in stale:
            del self._entries[sid]
        return len(stale)
