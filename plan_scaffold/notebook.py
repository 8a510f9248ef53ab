# plan_scaffold/notebook.py
from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from tools.llm_client import LLMClient, extract_content
from tools.log_sink import LogFn, log

__all__ = [
    "NotebookCell",
    "NotebookPlan",
    "NotebookPlanner",
    "NotebookGenerator",
    "NotebookValidationError",
    "parse_notebook_plan",
    "format_notebook_plan",
    "clean_json_response",
    "validate_notebook",
    "source_lines",
    "new_notebook",
]

NOTEBOOK_APP_TITLE = "Universal AI Project Generator - Notebook Mode"

NOTEBOOK_METADATA: Dict[str, Any] = {
    "kernelspec": {"display_name": "Python 3", "language": "python", "name": "python3"},
    "language_info": {
        "codemirror_mode": {"name": "ipython", "version": 3},
        "file_extension": ".py",
        "mimetype": "text/x-python",
        "name": "python",
        "nbconvert_exporter": "python",
        "pygments_lexer": "ipython3",
        "version": "3.10.0",
    },
}

_CELL_HEADER_RE = re.compile(r"^Cell\s+(\d+)\s+\[(markdown|code)\]:", re.IGNORECASE)


class NotebookValidationError(ValueError):
    pass


@dataclass
class NotebookCell:
    cell_number: int
    type: str          # "markdown" | "code"
    purpose: str = ""
    content: str = ""


@dataclass
class NotebookPlan:
    title: str = "Untitled Notebook"
    total_cells: int = 0
    cells: List[NotebookCell] = field(default_factory=list)


# ---------------- plan text <-> NotebookPlan ----------------

def parse_notebook_plan(text: str) -> NotebookPlan:
    title = "Untitled Notebook"
    total = 0
    cells: List[NotebookCell] = []
    current: Optional[NotebookCell] = None

    for line in (text or "").splitlines():
        s = line.strip()
        if s.startswith("Title:"):
            title = s[len("Title:"):].strip() or title
            continue
        if s.startswith("Total Cells:"):
            m = re.search(r"\d+", s)
            if m:
                total = int(m.group(0))
            continue
        m = _CELL_HEADER_RE.match(s)
        if m:
            if current is not None:
                cells.append(current)
            current = NotebookCell(cell_number=int(m.group(1)), type=m.group(2).lower())
            continue
        if current is None:
            continue
        if s.startswith("Purpose:"):
            current.purpose = s[len("Purpose:"):].strip()
        elif s.startswith("Content:"):
            current.content = s[len("Content:"):].strip()

    if current is not None:
        cells.append(current)
    return NotebookPlan(title=title, total_cells=total or len(cells), cells=cells)


def format_notebook_plan(plan: NotebookPlan, header: str = "NOTEBOOK PLAN:") -> str:
    head = f"Title: {plan.title}\nTotal Cells: {plan.total_cells}\n"
    parts = [f"{header}\n{head}" if header else head]
    for cell in plan.cells:
        parts.append(
            f"Cell {cell.cell_number} [{cell.type}]:\n"
            f"Purpose: {cell.purpose}\n"
            f"Content: {cell.content}\n"
        )
    return "\n".join(parts)


# ---------------- notebook JSON helpers ----------------

def source_lines(text: str) -> List[str]:
    """Notebook 'source' array: every line keeps its newline except the last."""
    lines = (text or "").split("\n")
    return [line + "\n" for line in lines[:-1]] + ([lines[-1]] if lines[-1] else [])


def new_notebook(cells: List[Dict[str, Any]]) -> Dict[str, Any]:
    return {
        "cells": cells,
        "metadata": json.loads(json.dumps(NOTEBOOK_METADATA)),
        "nbformat": 4,
        "nbformat_minor": 5,
    }


def markdown_cell(text: str) -> Dict[str, Any]:
    return {"cell_type": "markdown", "metadata": {}, "source": source_lines(text)}


def code_cell(text: str) -> Dict[str, Any]:
    return {
        "cell_type": "code",
        "execution_count": None,
        "metadata": {},
        "outputs": [],
        "source": source_lines(text),
    }


def clean_json_response(text: str) -> str:
    """Drop Markdown fences and anything outside the outermost braces."""
    s = re.sub(r"```[A-Za-z]*\s*", "", text or "")
    first = s.find("{")
    if first > 0:
        s = s[first:]
    last = s.rfind("}")
    if last != -1:
        s = s[:last + 1]
    return s.strip()


def validate_notebook(nb: Any) -> None:
    if not isinstance(nb, dict):
        raise NotebookValidationError("Invalid notebook: top level must be a JSON object")
    cells = nb.get("cells")
    if not isinstance(cells, list):
        raise NotebookValidationError("Invalid notebook: missing or invalid cells array")
    if not nb.get("metadata"):
        raise NotebookValidationError("Invalid notebook: missing metadata")
    if nb.get("nbformat") != 4:
        raise NotebookValidationError("Invalid notebook: nbformat must be 4")
    minor = nb.get("nbformat_minor")
    if not isinstance(minor, int) or isinstance(minor, bool):
        raise NotebookValidationError("Invalid notebook: nbformat_minor must be an integer")

    for i, cell in enumerate(cells):
        if not isinstance(cell, dict) or cell.get("cell_type") not in ("markdown", "code"):
            raise NotebookValidationError(f"Invalid cell {i}: missing or invalid cell_type")
        if not isinstance(cell.get("source"), list):
            raise NotebookValidationError(f"Invalid cell {i}: source must be an array")
        if cell["cell_type"] == "code":
            if "execution_count" not in cell:
                raise NotebookValidationError(f"Invalid cell {i}: code cells must have execution_count")
            if not isinstance(cell.get("outputs"), list):
                raise NotebookValidationError(f"Invalid cell {i}: code cells must have outputs array")


# ---------------- LLM-backed planner / generator ----------------

PLAN_PROMPT_TEMPLATE = """You are an expert Jupyter notebook planner. Create a detailed notebook plan.

User Request: {instruction}

Use this EXACT format:

NOTEBOOK PLAN:
Title: [Descriptive title]
Total Cells: [Number]

Cell 1 [markdown/code]:
Purpose: [What this accomplishes]
Content: [Brief description]

... continue for all cells ...

RULES:
- Number cells sequentially from 1 and mark each as [markdown] or [code].
- Mix documentation and code; the first cell is usually a markdown title.
- Imports come before usage and code flows top to bottom."""

REVISE_PROMPT_TEMPLATE = """You are an expert Jupyter notebook planner. Revise the notebook plan based on user feedback.

Original Plan:
{plan}

User Feedback: {feedback}

Answer with the REVISED plan in exactly the same format (Title:, Total Cells:, Cell N [markdown/code]:,
Purpose:, Content:). Incorporate the feedback, keep a logical flow, number cells sequentially."""

GENERATE_PROMPT_TEMPLATE = """You are an expert Jupyter notebook generator. Generate a valid Jupyter notebook JSON.

APPROVED PLAN:
{plan}

CONSTRAINTS:
1. Output ONLY JSON: start with {{ and end with }}, no Markdown fences, no commentary.
2. Top level: "cells", "metadata" (Python 3 kernelspec and language_info), "nbformat": 4, "nbformat_minor": 5.
3. Markdown cells: {{"cell_type": "markdown", "metadata": {{}}, "source": [...]}}.
4. Code cells: {{"cell_type": "code", "execution_count": null, "metadata": {{}}, "outputs": [], "source": [...]}}.
5. "source" is an array of strings, each line ending in "\\n" except optionally the last; keep indentation.
6. Exactly {total_cells} cells, matching the plan's cell types and descriptions, in order.
7. Code runs top to bottom: imports before usage, no forward references, valid Python.
8. Style (exploratory, functional, OOP, minimal, verbose, production-ready) is whatever the plan says.

Generate the notebook JSON now:"""


def _notebook_client(client: Optional[LLMClient], logger: Optional[LogFn]) -> LLMClient:
    return client or LLMClient(app_title=NOTEBOOK_APP_TITLE, logger=logger)


class NotebookPlanner:
    def __init__(self, client: Optional[LLMClient] = None, logger: Optional[LogFn] = None) -> None:
        self.client = _notebook_client(client, logger)
        self.logger = logger

    def _ask(self, prompt: str, model: Optional[str], tag: str) -> NotebookPlan:
        text = extract_content(self.client.chat([{"role": "user", "content": prompt}], model=model, tag=tag))
        plan = parse_notebook_plan(text)
        log(f"[notebook] {tag}: '{plan.title}' with {len(plan.cells)} cells", self.logger)
        return plan

    def generate_plan(self, instruction: str, model: Optional[str] = None) -> NotebookPlan:
        return self._ask(PLAN_PROMPT_TEMPLATE.format(instruction=instruction), model, "notebook:plan")

    def revise_plan(self, plan: NotebookPlan, feedback: str, model: Optional[str] = None) -> NotebookPlan:
        prompt = REVISE_PROMPT_TEMPLATE.format(plan=format_notebook_plan(plan), feedback=feedback)
        return self._ask(prompt, model, "notebook:revise")


class NotebookGenerator:
    def __init__(self, client: Optional[LLMClient] = None, logger: Optional[LogFn] = None) -> None:
        self.client = _notebook_client(client, logger)
        self.logger = logger

    def generate_notebook(self, plan: NotebookPlan, model: Optional[str] = None) -> Dict[str, Any]:
        """Ask for the notebook JSON, clean it, parse it and validate its shape."""
        prompt = GENERATE_PROMPT_TEMPLATE.format(
            plan=format_notebook_plan(plan, header=""),
            total_cells=plan.total_cells,
        )
        raw = extract_content(
            self.client.chat([{"role": "user", "content": prompt}], model=model, tag="notebook:generate")
        )
        text = clean_json_response(raw)
        try:
            nb = json.loads(text)
        except json.JSONDecodeError as e:
            raise NotebookValidationError(f"Model did not return valid notebook JSON: {e}") from e
        validate_notebook(nb)
        log(f"[notebook] generated {len(nb['cells'])} cells", self.logger)
        return nb
