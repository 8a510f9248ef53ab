# plan_scaffold/archiver.py
from __future__ import annotations

import io
import time
import zipfile
from typing import Iterable, List, Optional, Set, Tuple, Union

from tools.log_sink import LogFn, log

from .sanitize import safe_project_name, sanitize_relpath

COMPRESS_LEVEL = 6


class ArchiveError(RuntimeError):
    """The project archive could not be built; fatal for the request."""


def _dir_info(name: str) -> zipfile.ZipInfo:
    info = zipfile.ZipInfo(name.rstrip("/") + "/", date_time=time.localtime(time.time())[:6])
    info.external_attr = (0o40755 << 16) | 0x10
    return info


def _relative(path: str, root: str) -> str:
    """Sanitized path with any leading '<root>/' removed; '' for the root itself."""
    rel = sanitize_relpath(path)
    if rel is None:
        raise ArchiveError(f"Unsafe path in project: {path!r}")
    if rel == root:
        return ""
    if rel.startswith(root + "/"):
        rel = rel[len(root) + 1:]
    return rel


def build_project_zip(
    project_name: str,
    folders: Iterable[str],
    files: Iterable[Tuple[str, Union[str, bytes]]],
    logger: Optional[LogFn] = None,
) -> bytes:
    """
    Package folders and (path, content) pairs under a single '<project_name>/'
    directory and return the ZIP bytes. Directory entries come first.
    """
    root = safe_project_name(project_name)

    dirs: List[str] = []
    seen_dirs: Set[str] = set()
    for folder in folders:
        rel = _relative(folder, root)
        if rel and rel not in seen_dirs:
            seen_dirs.add(rel)
            dirs.append(rel)

    entries: List[Tuple[str, bytes]] = []
    seen_files: Set[str] = set()
    for path, content in files:
        rel = _relative(path, root)
        if not rel:
            raise ArchiveError(f"File path resolves to the project root: {path!r}")
        if rel in seen_files:
            log(f"[zip] duplicate file skipped: {rel}", logger)
            continue
        seen_files.add(rel)
        data = content if isinstance(content, bytes) else (content or "").encode("utf-8")
        entries.append((rel, data))

    bio = io.BytesIO()
    try:
        with zipfile.ZipFile(bio, "w", compression=zipfile.ZIP_DEFLATED, compresslevel=COMPRESS_LEVEL) as zf:
            zf.writestr(_dir_info(root), b"")
            for rel in dirs:
                zf.writestr(_dir_info(f"{root}/{rel}"), b"")
            for rel, data in entries:
                zf.writestr(f"{root}/{rel}", data)
    except (OSError, ValueError, zipfile.BadZipFile) as e:
        raise ArchiveError(f"Failed to build project archive: {e}") from e

    payload = bio.getvalue()
    log(f"[zip] {root}.zip: dirs={len(dirs)} files={len(entries)} bytes={len(payload)}", logger)
    return payload
