# tools/parsing_utils.py
from __future__ import annotations

import re

# ---- Regular Expression Patterns for Parsing Plans ----
# Matches a tree line: leading bars/spaces, one branch glyph followed by dashes, then the entry.
# e.g. "│   ├── src/   # sources" -> prefix="│   ", rest="src/   # sources"
# ASCII trees ("|-- src/", "+-- src/", "`-- src/") are accepted too.
TREE_LINE_RE = re.compile(
    r"^(?P<prefix>[ \t│├└|]*?)(?P<branch>[├└]|\||\+|`)(?:[─━\-]+)[ \t]*(?P<rest>.*)$"
)
# A line made only of vertical bars and whitespace (spacer rows inside a drawn tree).
TREE_SPACER_RE = re.compile(r"^[ \t│|]+$")
# Matches a Markdown code fence line and captures its language hint
FENCE_RE = re.compile(r"^\s*(?P<fence>```+|~~~+)\s*(?P<lang>[A-Za-z0-9_+\-.]*)\s*$")
# An entry name at the start of the text, optionally wrapped in backticks / emphasis.
ENTRY_NAME_RE = re.compile(
    r"^[`*]*(?P<name>[A-Za-z0-9_.\-][A-Za-z0-9_.\-/]*)[`*]*(?P<tail>.*)$"
)
# A bare (glyph-free) entry line: "name/" or "name.ext", optionally indented and commented.
BARE_LINE_RE = re.compile(
    r"^(?P<indent>[ \t]*)[`*]*(?P<name>[A-Za-z0-9_.\-][A-Za-z0-9_.\-/]*)[`*]*"
    r"(?:[ \t]+#[ \t]*(?P<desc>.*))?[ \t]*$"
)
# A file name component: something, a dot, then an extension containing at least one letter.
FILE_NAME_RE = re.compile(r"^[^/]*\.(?P<ext>[A-Za-z0-9_\-]*[A-Za-z][A-Za-z0-9_\-]*)$")
# Separators that start an inline description after an entry name.
DESCRIPTION_LEAD_RE = re.compile(r"^\s*(?:#|←|<-+|—|–|-+|:|\()\s*")

# ---- Heading / skip heuristics ----
HEADING_PHRASES = ("Project Structure", "Overview")


# ---- Helper Functions for Path and String Manipulation ----
def _norm_rel(path: str) -> str:
    """Normalizes a relative path string."""
    p = (path or "").strip().strip("`").replace("\\", "/")
    while p.startswith("./"):
        p = p[2:]
    return p.lstrip("/")


def file_extension(name: str) -> str:
    """Lower-cased extension of the last path component, '' when it has none."""
    m = FILE_NAME_RE.match(name.rstrip("/").split("/")[-1])
    return m.group("ext").lower() if m else ""


def is_file_name(name: str) -> bool:
    return not name.endswith("/") and bool(file_extension(name))


def _safe_normalize(s: str) -> str:
    """Normalizes newlines and removes null bytes from a string."""
    return s.replace("\r\n", "\n").replace("\r", "\n").replace("\x00", "")
