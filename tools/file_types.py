from __future__ import annotations
from pathlib import PurePosixPath

TEXT_EXTS = {
    ".py", ".txt", ".md", ".yaml", ".yml", ".json", ".toml", ".ini", ".cfg",
    ".conf", ".env", ".sh", ".sql", ".html", ".css", ".js", ".ts", ".ipynb",
    ".gitignore", ".dockerignore", ".csv", ".tsv",
}

LANG_FROM_EXT = {
    ".py": "python",
    ".md": "markdown",
    ".yaml": "yaml",
    ".yml": "yaml",
    ".json": "json",
    ".ipynb": "json",
    ".toml": "toml",
    ".ini": "ini",
    ".cfg": "ini",
    ".conf": "ini",
    ".env": "bash",
    ".sh": "bash",
    ".sql": "sql",
    ".html": "html",
    ".css": "css",
    ".js": "javascript",
    ".ts": "typescript",
    ".csv": "csv",
}


def guess_language(rel_path: str) -> str:
    """Syntax-highlighting language for st.code, from the file name."""
    p = PurePosixPath(rel_path)
    if p.name.lower() == "dockerfile":
        return "docker"
    return LANG_FROM_EXT.get(p.suffix.lower(), "text")


def looks_textual(rel_path: str) -> bool:
    p = PurePosixPath(rel_path)
    return p.name.lower() == "dockerfile" or p.suffix.lower() in TEXT_EXTS
