from __future__ import annotations

import re
from typing import Optional

# allow letters, numbers, -, _, ., and common file chars; trim surrounding spaces
_SAFE_COMP_RE = re.compile(r"^[A-Za-z0-9._\-]+$")
_UNSAFE_CHARS_RE = re.compile(r"[^A-Za-z0-9._\-]+")


def clean_component(name: Optional[str]) -> Optional[str]:
    if not name:
        return None
    s = str(name).strip().replace("\\", "/").strip("/")
    if not s:
        return None
    # take last segment only (prevent paths sneaking in)
    s = s.split("/")[-1]
    if s in (".", ".."):
        return None
    return s if _SAFE_COMP_RE.match(s) else None


def sanitize_relpath(p: Optional[str]) -> Optional[str]:
    """Return a safe posix-ish relative path, or None when it would escape its root."""
    if not p:
        return None
    s = str(p).replace("\\", "/").strip()
    if s.startswith("/"):
        return None
    s = re.sub(r"^(?:\./)+", "", s)     # strip leading './'
    s = re.sub(r"/+", "/", s)           # collapse slashes
    parts = [seg for seg in s.split("/") if seg not in ("", ".")]
    if not parts or ".." in parts:
        return None
    comps = []
    for seg in parts:
        c = clean_component(seg)
        if not c:
            return None
        comps.append(c)
    return "/".join(comps)


def safe_project_name(name: Optional[str]) -> str:
    """Sanitizes a project name for use as the archive's top-level directory."""
    s = (name or "").strip().strip("/\\")
    s = _UNSAFE_CHARS_RE.sub("_", s).strip("._")
    return s or "project"
