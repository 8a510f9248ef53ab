# tools/log_sink.py
from __future__ import annotations

import datetime as _dt
import os
from pathlib import Path
from typing import Callable, Optional

LogFn = Callable[[str], None]


def _log_sink() -> Optional[Path]:
    p = os.getenv("LLM_LOG_FILE", "").strip()
    if not p:
        return None
    path = Path(p)
    path.parent.mkdir(parents=True, exist_ok=True)
    return path


def writeln(line: str) -> None:
    """
    Timestamp a log line, echo it when LLM_DEBUG=1 and append it to LLM_LOG_FILE
    when that is set. Sink failures never break the caller.
    """
    ts = _dt.datetime.now(_dt.timezone.utc).isoformat(timespec="seconds")
    msg = f"[{ts}] {line}"
    if os.getenv("LLM_DEBUG", "0") == "1":
        print(msg, flush=True)
    try:
        dest = _log_sink()
        if dest:
            with dest.open("a", encoding="utf-8") as f:
                f.write(msg + "\n")
    except OSError:
        pass


def log(msg: str, logger: Optional[LogFn] = None) -> None:
    """Send a line to the caller's logger (UI, CLI) and to the shared sink."""
    if logger:
        logger(msg)
    writeln(msg)
