# plan_scaffold/extractor.py
from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import List, Optional, Set, Union

from tools.log_sink import LogFn, log
from tools.parsing_utils import (
    BARE_LINE_RE,
    DESCRIPTION_LEAD_RE,
    ENTRY_NAME_RE,
    FENCE_RE,
    HEADING_PHRASES,
    TREE_LINE_RE,
    TREE_SPACER_RE,
    _norm_rel,
    file_extension,
    is_file_name,
)

__all__ = [
    "FileSpec",
    "PlanStructure",
    "StructureExtractor",
    "extract_structure",
    "file_type_for",
    "default_description",
]

DEFAULT_INDENT_WIDTH = 4

TYPE_BY_EXTENSION = {
    "py": "python",
    "md": "markdown",
    "txt": "text",
    "yaml": "yaml",
    "yml": "yaml",
    "json": "json",
    "dockerfile": "dockerfile",
    "cfg": "config",
    "conf": "config",
    "ini": "config",
    "toml": "config",
    "env": "config",
}


@dataclass(frozen=True)
class FileSpec:
    path: str
    type: str
    description: str


@dataclass
class PlanStructure:
    folders: List[str] = field(default_factory=list)
    files: List[FileSpec] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.folders and not self.files


@dataclass
class _Entry:
    lineno: int
    column: int
    name: str
    description: str
    glyph: bool


# Line classifications that are not entries.
_GAP = "gap"      # blank or spacer row: the current tree block continues
_BREAK = "break"  # prose, heading or fence: the current tree block ends


def file_type_for(path: str) -> str:
    return TYPE_BY_EXTENSION.get(file_extension(path), "text")


def default_description(path: str) -> str:
    file_name = path.rstrip("/").split("/")[-1]
    if file_name == "requirements.txt":
        return "Python dependencies"
    if file_name == "README.md":
        return "Project documentation"
    for needle, text in (
        ("train", "Training script"),
        ("model", "Model architecture"),
        ("data", "Data processing utilities"),
        ("inference", "Inference script"),
        ("config", "Configuration file"),
    ):
        if needle in file_name:
            return text
    return f"{file_name.split('.')[0] or file_name} module"


def _infer_width(entries: List[_Entry]) -> int:
    """Most common positive column step between consecutive entries (ties: smallest)."""
    steps = Counter(
        b.column - a.column
        for a, b in zip(entries, entries[1:])
        if b.column - a.column >= 2
    )
    if not steps:
        return DEFAULT_INDENT_WIDTH
    best = max(steps.values())
    return min(step for step, n in steps.items() if n == best)


def _split(name: str) -> List[str]:
    return [seg for seg in _norm_rel(name).split("/") if seg and seg != "."]


class StructureExtractor:
    """
    Turns an LLM-drawn project tree into ordered folder and file lists.

    Lines are grouped into tree blocks (runs of entries uninterrupted by prose,
    headings or code fences). Within a block, nesting depth comes from the
    column where each entry's text starts, measured from the block's leftmost
    entry in steps of ``indent_width`` (inferred per block when not given).
    Glyph-free lines ("src/", "    main.py") go through the same column
    arithmetic, which is what keeps plain indented listings working.
    """

    def __init__(
        self,
        indent_width: Optional[int] = None,
        root_hint: Optional[str] = None,
        logger: Optional[LogFn] = None,
    ) -> None:
        if indent_width is not None and indent_width < 1:
            raise ValueError("indent_width must be positive")
        self.indent_width = indent_width
        self.root_hint = _norm_rel(root_hint or "").rstrip("/") or None
        self.logger = logger

    # ---------------- public ----------------

    def extract(self, plan_text: str) -> PlanStructure:
        self._folders: List[str] = []
        self._files: List[FileSpec] = []
        self._seen_folders: Set[str] = set()
        self._seen_files: Set[str] = set()
        self._roots: Set[str] = {self.root_hint} if self.root_hint else set()
        self._label_seen = False

        block: List[_Entry] = []
        lines = (plan_text or "").replace("\r\n", "\n").replace("\r", "\n").split("\n")
        for lineno, raw in enumerate(lines, start=1):
            item = self._classify(lineno, raw.expandtabs(DEFAULT_INDENT_WIDTH))
            if item == _GAP:
                continue
            if item == _BREAK:
                self._flush(block)
                block = []
                continue
            block.append(item)
        self._flush(block)

        self._close_ancestors()

        structure = PlanStructure(folders=list(self._folders), files=list(self._files))
        log(f"[extract] folders ({len(structure.folders)}): {', '.join(structure.folders)}", self.logger)
        log(f"[extract] files ({len(structure.files)}): {', '.join(f.path for f in structure.files)}", self.logger)
        if structure.is_empty:
            log("[extract:warn] No project structure found in plan; plan may be malformed.", self.logger)
        return structure

    # ---------------- line classification ----------------

    def _classify(self, lineno: int, line: str) -> Union[_Entry, str]:
        stripped = line.strip()
        if not stripped or TREE_SPACER_RE.match(line):
            return _GAP
        if FENCE_RE.match(line):
            return _BREAK

        m = TREE_LINE_RE.match(line)
        if m:
            parsed = self._parse_entry_text(m.group("rest"))
            if parsed is None:
                # "│   └── ..." and similar: still inside the drawing
                return _GAP
            name, desc = parsed
            return _Entry(lineno, m.start("rest"), name, desc, glyph=True)

        if stripped.startswith(("#", "=")) or any(p in stripped for p in HEADING_PHRASES):
            return _BREAK

        m = BARE_LINE_RE.match(line)
        if m:
            name = m.group("name")
            if name.endswith("/") or is_file_name(name):
                return _Entry(lineno, len(m.group("indent")), name, (m.group("desc") or "").strip(), glyph=False)
        return _BREAK

    @staticmethod
    def _parse_entry_text(rest: str):
        m = ENTRY_NAME_RE.match(rest.strip())
        if not m:
            return None
        name = m.group("name")
        if not any(ch.isalnum() for ch in name):
            return None
        tail = m.group("tail")
        if tail and not tail[0].isspace() and tail[0] not in "#:(←<-—–":
            return None
        desc = ""
        if tail.strip():
            desc = DESCRIPTION_LEAD_RE.sub("", tail, count=1).strip()
            if tail.lstrip().startswith("(") and desc.endswith(")"):
                desc = desc[:-1].strip()
        return name, desc

    # ---------------- block processing ----------------

    def _flush(self, block: List[_Entry]) -> None:
        if not block:
            return
        entries = list(block)
        prefix: List[str] = []

        # "proj/" directly above a drawn tree labels that tree.
        if len(entries) > 1 and not entries[0].glyph and entries[0].name.endswith("/") and entries[1].glyph:
            label = "/".join(_split(entries.pop(0).name))
            if not self._label_seen or label in self._roots:
                self._label_seen = True
                self._roots.add(label)
                log(f"[extract] tree root: {label}", self.logger)
            else:
                prefix = [label]
                self._add_folder(label)

        width = self.indent_width or _infer_width(entries)
        base = min(e.column for e in entries)
        depths = [max(0, (e.column - base) // width) for e in entries]

        stack: List[str] = []
        for i, e in enumerate(entries):
            depth = min(depths[i], len(stack))
            del stack[depth:]

            parts = _split(e.name)
            if not parts:
                continue
            is_dir = e.name.endswith("/")
            if not is_dir and not is_file_name(e.name):
                # A dotless name is a folder only when something nests under it.
                is_dir = i + 1 < len(entries) and depths[i + 1] > depths[i]
                if not is_dir:
                    log(f"[extract] skip line {e.lineno}: {e.name!r} has no extension", self.logger)
                    continue

            rel = self._strip_root("/".join(prefix + stack + parts))
            if is_dir:
                if rel:
                    self._add_folder(rel)
                stack.append("/".join(parts))
            elif rel:
                self._add_file(rel, e.description)

    def _strip_root(self, rel: str) -> str:
        for root in self._roots:
            if rel == root:
                return ""
            if rel.startswith(root + "/"):
                return rel[len(root) + 1:]
        return rel

    def _add_folder(self, path: str) -> None:
        if path and path not in self._seen_folders:
            self._seen_folders.add(path)
            self._folders.append(path)

    def _add_file(self, path: str, description: str) -> None:
        if path in self._seen_files:
            return
        self._seen_files.add(path)
        self._files.append(
            FileSpec(path=path, type=file_type_for(path), description=description or default_description(path))
        )

    def _close_ancestors(self) -> None:
        """Every directory above a file or folder must itself be a listed folder."""
        for path in [f.path for f in self._files] + list(self._folders):
            parts = path.split("/")
            for i in range(1, len(parts)):
                self._add_folder("/".join(parts[:i]))


def extract_structure(
    plan_text: str,
    *,
    indent_width: Optional[int] = None,
    root_hint: Optional[str] = None,
    logger: Optional[LogFn] = None,
) -> PlanStructure:
    return StructureExtractor(indent_width=indent_width, root_hint=root_hint, logger=logger).extract(plan_text)
