# plan_scaffold/progress.py
from __future__ import annotations

import json
import queue
import threading
import time
from collections import OrderedDict, deque
from dataclasses import dataclass
from typing import Any, Callable, Deque, Dict, Iterator, List, Optional

START = "start"
FILE_START = "file_start"
FILE_COMPLETE = "file_complete"
FILE_ERROR = "file_error"
VALIDATING = "validating"
PACKAGING = "packaging"
COMPLETE = "complete"
ERROR = "error"

TERMINAL_TYPES = (COMPLETE, ERROR)

VALIDATING_PERCENT = 95
PACKAGING_PERCENT = 98


@dataclass
class ProgressEvent:
    type: str
    message: str = ""
    current_file: Optional[int] = None
    total_files: Optional[int] = None
    progress: Optional[int] = None
    file_info: Optional[Dict[str, Any]] = None
    next_file: Optional[Dict[str, Any]] = None
    statistics: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        """Wire shape (camelCase keys, unset fields omitted)."""
        out: Dict[str, Any] = {"type": self.type, "message": self.message}
        for key, value in (
            ("currentFile", self.current_file),
            ("totalFiles", self.total_files),
            ("progress", self.progress),
            ("fileInfo", self.file_info),
            ("nextFile", self.next_file),
            ("statistics", self.statistics),
        ):
            if value is not None:
                out[key] = value
        return out


ProgressCallback = Callable[[ProgressEvent], None]


def format_sse(event: Any) -> str:
    """Render one Server-Sent Events frame: 'data: <json>\\n\\n'."""
    payload = event.to_dict() if isinstance(event, ProgressEvent) else event
    return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n"


def percent(done: int, total: int) -> int:
    if total <= 0:
        return 0
    return round(done / total * 100)


class ProgressBroker:
    """
    Fan-out of progress events per session id.

    Each subscriber owns a queue. A bounded backlog per session is replayed to
    late subscribers, so a client that connects after generation started still
    sees the run from its first event. Backlogs are kept for the `max_sessions`
    most recently published sessions only.
    """

    def __init__(self, backlog: int = 256, heartbeat_s: float = 2.0, max_sessions: int = 64) -> None:
        if max_sessions <= 0:
            raise ValueError("max_sessions must be positive")
        self.backlog = backlog
        self.max_sessions = max_sessions
        self.heartbeat_s = heartbeat_s
        self._lock = threading.Lock()
        self._subscribers: Dict[str, List["queue.Queue[ProgressEvent]"]] = {}
        self._history: "OrderedDict[str, Deque[ProgressEvent]]" = OrderedDict()

    def publish(self, session_id: str, event: ProgressEvent) -> None:
        with self._lock:
            history = self._history.get(session_id)
            if history is None:
                history = self._history[session_id] = deque(maxlen=self.backlog)
            else:
                self._history.move_to_end(session_id)
            history.append(event)
            while len(self._history) > self.max_sessions:
                self._history.popitem(last=False)
            targets = list(self._subscribers.get(session_id, ()))
        for q in targets:
            q.put(event)

    def callback(self, session_id: str) -> ProgressCallback:
        return lambda event: self.publish(session_id, event)

    def subscribe(self, session_id: str, replay: bool = True) -> "queue.Queue[ProgressEvent]":
        q: "queue.Queue[ProgressEvent]" = queue.Queue()
        with self._lock:
            if replay:
                for event in self._history.get(session_id, ()):
                    q.put(event)
            self._subscribers.setdefault(session_id, []).append(q)
        return q

    def unsubscribe(self, session_id: str, q: "queue.Queue[ProgressEvent]") -> None:
        with self._lock:
            subs = self._subscribers.get(session_id)
            if not subs:
                return
            if q in subs:
                subs.remove(q)
            if not subs:
                del self._subscribers[session_id]

    def forget(self, session_id: str) -> None:
        """Drop the replay backlog of a finished session."""
        with self._lock:
            self._history.pop(session_id, None)

    def stream(self, session_id: str) -> Iterator[str]:
        """
        SSE frames for one client: a 'connected' frame, then every event,
        with heartbeats while idle. Ends after 'complete' or 'error'.
        Closing the generator only unsubscribes; the run itself keeps going.
        """
        q = self.subscribe(session_id)
        try:
            yield format_sse({"type": "connected", "message": "Stream connected"})
            while True:
                try:
                    event = q.get(timeout=self.heartbeat_s)
                except queue.Empty:
                    yield format_sse({"type": "heartbeat", "timestamp": int(time.time() * 1000)})
                    continue
                yield format_sse(event)
                if event.type in TERMINAL_TYPES:
                    return
        finally:
            self.unsubscribe(session_id, q)
