# plan_scaffold/cleaner.py
from __future__ import annotations

import ast
import keyword
import re
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from tools.log_sink import LogFn, log
from tools.parsing_utils import _safe_normalize

# A whole line that opens or closes a Markdown fence, with or without a language tag.
_FENCE_LINE_RE = re.compile(r"^[ \t]*```+[A-Za-z0-9_+\-.]*[ \t]*\n?", re.MULTILINE)
# **bold** / *italic*: markers must hug non-space text and must not touch word characters,
# quotes or dots, so `**kwargs`, `*args`, `a * b`, `x**2` and `glob("*.py")` are left alone.
_BOLD_RE = re.compile(r"(?<![\w*\"'.])\*\*(?=[^\s*\"'.])(.+?)(?<=[^\s*\"'.])\*\*(?![\w*\"'])")
_ITALIC_RE = re.compile(r"(?<![\w*\"'.])\*(?=[^\s*\"'.])(.+?)(?<=[^\s*\"'.])\*(?![\w*\"'])")
_BLANK_RUN_RE = re.compile(r"\n(?:[ \t]*\n){3,}")


def clean_content(raw: str) -> str:
    """Strip Markdown wrapping an LLM put around a file body."""
    s = _safe_normalize(raw or "")
    s = _FENCE_LINE_RE.sub("", s)
    s = s.replace("`", "")
    s = _BOLD_RE.sub(r"\1", s)
    s = _ITALIC_RE.sub(r"\1", s)
    s = _BLANK_RUN_RE.sub("\n\n\n", s)
    s = s.strip()
    return s + "\n" if s else ""


# ---------------- Python advisory checks ----------------

_DICT_NO_EQ_RE = re.compile(r"^[ \t]*(\w+)[ \t]+\{", re.MULTILINE)
_DEF_NO_COLON_RE = re.compile(r"^[ \t]*def[ \t]+\w+\([^)]*\)[ \t]*$", re.MULTILINE)
_IMPORT_FROM_RE = re.compile(r"\bimport[ \t]+from[ \t]+\w+")


@dataclass
class SyntaxReport:
    parses: bool
    errors: List[str] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return self.parses and not self.errors


def _parse_error(code: str) -> Optional[str]:
    try:
        ast.parse(code)
    except SyntaxError as e:
        return f"line {e.lineno}: {e.msg}"
    except ValueError as e:  # null bytes
        return str(e)
    return None


def validate_python(code: str) -> SyntaxReport:
    """Report-only check: the real parser first, then the usual LLM slip patterns."""
    errors: List[str] = []
    parse_error = _parse_error(code)
    if parse_error:
        errors.append(f"SyntaxError at {parse_error}")

    for m in _DICT_NO_EQ_RE.finditer(code):
        if keyword.iskeyword(m.group(1)):
            continue
        errors.append(f"Missing '=' operator in dictionary assignment: {m.group(0).strip()}")
    for m in _DEF_NO_COLON_RE.finditer(code):
        errors.append(f"Missing ':' in function definition: {m.group(0).strip()}")
    for m in _IMPORT_FROM_RE.finditer(code):
        errors.append(f'Invalid import syntax - should be "from ... import": {m.group(0).strip()}')

    return SyntaxReport(parses=parse_error is None, errors=errors)


def _fix_dict_assignment(code: str) -> str:
    def repl(m: "re.Match[str]") -> str:
        if keyword.iskeyword(m.group(2)):
            return m.group(0)
        return f"{m.group(1)}{m.group(2)} = {{"

    return re.sub(r"^([ \t]*)(\w+)[ \t]+\{[ \t]*$", repl, code, flags=re.MULTILINE)


_REPAIRS = (
    ("inserted missing '=' before '{'", _fix_dict_assignment),
    ("added missing ':' after def", lambda c: re.sub(r"^([ \t]*def[ \t]+\w+\([^)]*\))[ \t]*$", r"\1:", c, flags=re.MULTILINE)),
    ("rewrote 'import from x'", lambda c: re.sub(r"\bimport[ \t]+from[ \t]+(\w+)", r"from \1 import", c)),
)


def repair_python(code: str, logger: Optional[LogFn] = None) -> Tuple[str, List[str]]:
    """
    Apply the pattern repairs. The result is kept only when the original
    fails to parse and the repaired text parses; otherwise the input comes back untouched.
    """
    if _parse_error(code) is None:
        return code, []

    fixed = code
    applied: List[str] = []
    for label, fn in _REPAIRS:
        after = fn(fixed)
        if after != fixed:
            applied.append(label)
            fixed = after

    if not applied:
        return code, []
    if _parse_error(fixed) is not None:
        log(f"[clean] repair rejected ({', '.join(applied)}): result still does not parse", logger)
        return code, []
    log(f"[clean] repaired: {', '.join(applied)}", logger)
    return fixed, applied
