# plan_scaffold/file_filter.py
from __future__ import annotations

from typing import Dict, FrozenSet, Tuple

from tools.parsing_utils import _norm_rel, file_extension

# Category names. Everything except SOURCE is left to the user to supply.
VIDEO = "video"
AUDIO = "audio"
IMAGE = "image"
WEIGHTS = "weights"
ARCHIVE = "archive"
DATABASE = "database"
TABULAR = "tabular"
NO_EXTENSION = "no_extension"
USER_MANAGED = "user_managed"
USER_DATA = "user_data"
SOURCE = "source"

USER_PROVIDED_EXTENSIONS: Dict[str, FrozenSet[str]] = {
    VIDEO: frozenset({"mp4", "avi", "mov", "mkv", "webm"}),
    AUDIO: frozenset({"mp3", "wav", "flac", "aac", "ogg", "m4a"}),
    IMAGE: frozenset({"jpg", "jpeg", "png", "gif", "bmp", "tiff", "tif", "webp"}),
    WEIGHTS: frozenset({"pt", "pth", "h5", "pkl", "pickle", "joblib", "model", "onnx", "ckpt", "safetensors"}),
    ARCHIVE: frozenset({"zip", "tar", "gz", "tgz", "bz2", "xz", "rar", "7z"}),
    DATABASE: frozenset({"db", "sqlite", "sqlite3"}),
    TABULAR: frozenset({"csv", "tsv", "xlsx", "xls", "xlsm", "xlsb", "parquet", "feather"}),
}

USER_MANAGED_FILES: FrozenSet[str] = frozenset({"setup.py", "pyproject.toml"})

USER_DATA_DIRS: Tuple[str, ...] = (
    "data/",
    "dataset/",
    "datasets/",
    "models/weights/",
    "weights/",
    "test_data/",
    "sample_data/",
    "assets/",
    "media/",
)


def classify(path: str) -> str:
    """Category of a planned file; the first matching rule wins."""
    rel = _norm_rel(path)
    base = rel.rstrip("/").split("/")[-1]

    ext = file_extension(base)
    if not ext:
        return NO_EXTENSION
    for category, exts in USER_PROVIDED_EXTENSIONS.items():
        if ext in exts:
            return category

    if base in USER_MANAGED_FILES:
        return USER_MANAGED

    if rel.lower().startswith(USER_DATA_DIRS):
        return USER_DATA

    return SOURCE


def should_generate(path: str) -> bool:
    return classify(path) == SOURCE
