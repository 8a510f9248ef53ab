# plan_scaffold/placeholders.py
"""
Placeholder bodies for planned files the generator must not write itself
(datasets, media, weights, user-managed packaging files) and for files whose
generation failed. Everything here is pure text assembly; no LLM involved.
"""
from __future__ import annotations

import json
from typing import Dict, List, Optional

from tools.parsing_utils import _norm_rel, file_extension

from . import file_filter as ff

# Loading snippets for tabular data, keyed by extension.
_TABULAR_LOADERS: Dict[str, str] = {
    "csv": 'df = pd.read_csv("{path}")',
    "tsv": 'df = pd.read_csv("{path}", sep="\\t")',
    "xlsx": 'df = pd.read_excel("{path}")',
    "xls": 'df = pd.read_excel("{path}")',
    "xlsm": 'df = pd.read_excel("{path}")',
    "xlsb": 'df = pd.read_excel("{path}", engine="pyxlsb")',
    "parquet": 'df = pd.read_parquet("{path}")',
    "feather": 'df = pd.read_feather("{path}")',
}

_WEIGHT_LOADERS: Dict[str, str] = {
    "pt": 'state = torch.load("{path}", map_location="cpu")',
    "pth": 'state = torch.load("{path}", map_location="cpu")',
    "ckpt": 'state = torch.load("{path}", map_location="cpu")',
    "h5": 'model = tf.keras.models.load_model("{path}")',
    "pkl": 'model = joblib.load("{path}")',
    "pickle": 'model = joblib.load("{path}")',
    "joblib": 'model = joblib.load("{path}")',
    "onnx": 'session = onnxruntime.InferenceSession("{path}")',
    "safetensors": 'state = safetensors.torch.load_file("{path}")',
}

_LINE_COMMENT: Dict[str, str] = {
    "py": "#",
    "yaml": "#",
    "yml": "#",
    "toml": "#",
    "cfg": "#",
    "conf": "#",
    "ini": ";",
    "env": "#",
    "sh": "#",
    "txt": "#",
    "sql": "--",
    "js": "//",
    "ts": "//",
}


def _commented(ext: str, lines: List[str]) -> str:
    """Wrap text lines in the comment syntax of a file with extension `ext`."""
    if ext in ("md", "markdown", "html", "xml"):
        return "<!--\n" + "\n".join(lines) + "\n-->\n"
    if ext in ("css", "scss"):
        return "/*\n" + "\n".join(lines) + "\n*/\n"
    prefix = _LINE_COMMENT.get(ext, "#")
    return "".join(f"{prefix} {line}\n" if line else f"{prefix}\n" for line in lines)


def _header(path: str, what: str) -> List[str]:
    return [
        f"PLACEHOLDER: {path}",
        what,
        "This file was listed in the project plan but is not generated.",
        "Replace it with your own file before running the project.",
    ]


def _tabular(path: str, ext: str) -> List[str]:
    loader = _TABULAR_LOADERS.get(ext, 'df = pd.read_csv("{path}")').format(path=path)
    return _header(path, "Tabular dataset: provide your data in this location.") + [
        "",
        "Expected: one header row, one record per row.",
        "Load it with pandas:",
        "",
        "  import pandas as pd",
        f"  {loader}",
        "  print(df.head())",
    ]


def _video(path: str) -> List[str]:
    return _header(path, "Video file: provide your own footage here.") + [
        "",
        "  import cv2",
        f'  cap = cv2.VideoCapture("{path}")',
        "  ok, frame = cap.read()",
    ]


def _audio(path: str) -> List[str]:
    return _header(path, "Audio file: provide your own recording here.") + [
        "",
        "  import librosa",
        f'  y, sr = librosa.load("{path}", sr=None)',
    ]


def _image(path: str) -> List[str]:
    return _header(path, "Image file: provide your own image here.") + [
        "",
        "  from PIL import Image",
        f'  img = Image.open("{path}")',
    ]


def _weights(path: str, ext: str) -> List[str]:
    loader = _WEIGHT_LOADERS.get(ext, 'state = torch.load("{path}", map_location="cpu")').format(path=path)
    return _header(path, "Model weights: train the model or download a checkpoint into this path.") + [
        "",
        "Typical loaders:",
        f"  {loader}",
        f'  torch.load("{path}")                    # PyTorch checkpoints',
        f'  joblib.load("{path}")                   # scikit-learn models',
        f'  tf.keras.models.load_model("{path}")    # Keras models',
    ]


def _archive(path: str) -> List[str]:
    return _header(path, "Archive: place the archive here and extract it before use.") + [
        "",
        "  import shutil",
        f'  shutil.unpack_archive("{path}", extract_dir="data/")',
    ]


def _database(path: str) -> List[str]:
    return _header(path, "Database file: create or copy your database here.") + [
        "",
        "  import sqlite3",
        f'  conn = sqlite3.connect("{path}")',
    ]


def _user_managed(path: str) -> List[str]:
    return _header(path, "Packaging file: write this one yourself to match your distribution setup.") + [
        "",
        "List the project's dependencies (see requirements.txt) and entry points here.",
    ]


def _user_data(path: str) -> List[str]:
    return _header(path, "User data: this path lives in a data directory and must be supplied by you.") + [
        "",
        "Keep raw inputs here; the generated scripts read from this directory.",
    ]


def _no_extension(path: str) -> List[str]:
    return _header(path, "Unknown file kind (no extension): create it manually if the project needs it.")


def _lines_for(rel: str, cat: str, ext: str) -> List[str]:
    if cat == ff.TABULAR:
        return _tabular(rel, ext)
    if cat == ff.VIDEO:
        return _video(rel)
    if cat == ff.AUDIO:
        return _audio(rel)
    if cat == ff.IMAGE:
        return _image(rel)
    if cat == ff.WEIGHTS:
        return _weights(rel, ext)
    if cat == ff.ARCHIVE:
        return _archive(rel)
    if cat == ff.DATABASE:
        return _database(rel)
    if cat == ff.USER_MANAGED:
        return _user_managed(rel)
    if cat == ff.USER_DATA:
        return _user_data(rel)
    if cat == ff.NO_EXTENSION:
        return _no_extension(rel)
    return _header(rel, "Left for you to provide.")


def placeholder_for(path: str, category: Optional[str] = None) -> str:
    """Explanatory body for a planned file that is left to the user, in that file's comment syntax."""
    rel = _norm_rel(path)
    cat = category or ff.classify(rel)
    ext = file_extension(rel)
    lines = _lines_for(rel, cat, ext)
    if ext == "json":
        return json.dumps(
            {"_placeholder": True, "path": rel, "category": cat, "notes": [line for line in lines[1:] if line]},
            indent=2,
        ) + "\n"
    return _commented(ext, lines)


def failure_placeholder(path: str, error: object) -> str:
    """Body written in place of a file whose generation failed."""
    rel = _norm_rel(path)
    reason = str(error) or type(error).__name__
    ext = file_extension(rel)

    if ext == "json":
        return json.dumps(
            {"_generation_failed": True, "path": rel, "error": reason},
            indent=2,
        ) + "\n"

    return _commented(ext, [
        f"GENERATION FAILED: {rel}",
        f"Error: {reason}",
        "Regenerate the project or write this file by hand.",
    ])
