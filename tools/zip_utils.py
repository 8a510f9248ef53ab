from __future__ import annotations
import io
import zipfile
from typing import Dict, List

from tools.file_types import guess_language, looks_textual


def preview_zip(payload: bytes, max_bytes: int = 200_000) -> List[Dict]:
    """
    Read a generated project archive back for display: one record per file with
    its path inside the project root, language, size and (truncated) text.
    """
    out: List[Dict] = []
    with zipfile.ZipFile(io.BytesIO(payload)) as zf:
        for info in zf.infolist():
            if info.is_dir():
                continue
            rel = info.filename.split("/", 1)[1] if "/" in info.filename else info.filename
            if looks_textual(rel):
                with zf.open(info, "r") as f:
                    data = f.read(max_bytes + 1)
                text = data[:max_bytes].decode("utf-8", errors="replace")
                if len(data) > max_bytes:
                    text += "\n… (truncated)"
            else:
                text = ""
            out.append({
                "archive_path": info.filename,
                "rel_path": rel,
                "language": guess_language(rel),
                "size": info.file_size,
                "compressed": info.compress_size,
                "content": text,
            })
    out.sort(key=lambda r: r["rel_path"])
    return out


def list_dirs(payload: bytes) -> List[str]:
    with zipfile.ZipFile(io.BytesIO(payload)) as zf:
        return sorted(i.filename for i in zf.infolist() if i.is_dir())
