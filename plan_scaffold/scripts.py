# plan_scaffold/scripts.py
from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Dict, List, Optional

from tools.llm_client import LLMClient, extract_content
from tools.log_sink import LogFn, log

from .cleaner import clean_content, repair_python, validate_python
from .notebook import code_cell, markdown_cell, new_notebook, validate_notebook
from .sanitize import safe_project_name

__all__ = ["GeneratedFile", "ScriptGenerator", "build_training_notebook", "FLOW_TYPES"]

FLOW_TYPES = ("custom", "predefined")

# "# Step 3: Preprocessing", "# ======", "# ------" start a new notebook cell.
_SECTION_RE = re.compile(r"^#\s*(?:Step\s+\d+\b|={3,}|-{3,})", re.IGNORECASE)
_RULE_ONLY_RE = re.compile(r"^#\s*(?:={3,}|-{3,})\s*$")


@dataclass
class GeneratedFile:
    filename: str
    content: str
    type: str   # "python" | "notebook" | "markdown"


PREDEFINED_TRAIN_STEPS = (
    "Imports and Configuration",
    "Data Loading",
    "Data Preprocessing / Feature Engineering",
    "Data Split (Train / Validation / Test)",
    "Model Definition / Initialization",
    "Training Function",
    "Evaluation / Validation Function",
    "Training Loop / Fit",
    "Model Evaluation on Test Set",
    "Model Saving",
    "Results Visualization",
)

PREDEFINED_INFERENCE_STEPS = (
    "Imports and Configuration",
    "Model Loading",
    "Input Preprocessing",
    "Inference / Prediction Logic",
    "Post-processing of Outputs",
)

_SYNTAX_RULES = """PYTHON SYNTAX RULES:
- Dictionary assignments use '=': summary = {...}, never summary {...}
- Every def ends with ':' and every call has parentheses
- Imports read 'from x import y', never 'import from x'
- f-strings for formatting, never backticks
- Output raw Python only: no Markdown fences, no prose before or after the code"""

TRAIN_CUSTOM_TEMPLATE = """Generate a complete, production-ready Python training script.

Project: {project_name}
Instruction: {instruction}
Plan: {plan}

REQUIREMENTS:
- Fully executable: no placeholders, no TODOs, no bare 'pass' bodies.
- Implement exactly the architecture the instruction names, with the matching libraries.
- One configuration section at the top (batch_size, learning_rate, epochs, random_seed, paths)
  and deterministic seeds.
- Data loading with validation, preprocessing with shape checks, leak-free train/validation/test split,
  model definition, training loop with progress, evaluation metrics, model saving (weights, config,
  preprocessing metadata) and real plots.
- Start every section with a header comment of the form '# Step N: <Title>'. No other comments.

{rules}"""

TRAIN_PREDEFINED_TEMPLATE = """Generate a complete Python training script following this EXACT structure.

Project: {project_name}
Instruction: {instruction}
Plan: {plan}

Sections, in order, each starting with a '# Step N: <Title>' header comment:
{steps}

REQUIREMENTS:
- Fully executable: no placeholders, no TODOs, no bare 'pass' bodies. No comments besides the step headers.
- Step 1 centralizes every hyperparameter and path and sets deterministic seeds.
- Steps 2-4 validate shapes, label alignment and split sizes.
- Step 10 saves weights, configuration and preprocessing metadata; step 11 draws real plots.

{rules}"""

INFERENCE_CUSTOM_TEMPLATE = """Generate a complete, standalone Python inference script for the model trained by {project_name}_train.py.

Project: {project_name}
Instruction: {instruction}
Plan: {plan}

REQUIREMENTS:
- Configuration, model loading (verify the files exist), the exact preprocessing used in training,
  single and batch prediction, formatted outputs with confidence scores where applicable, and a CLI entry point.
- Fully executable: no placeholders, no TODOs.
- Start every section with a header comment of the form '# Step N: <Title>'.

{rules}"""

INFERENCE_PREDEFINED_TEMPLATE = """Generate a complete Python inference script following this EXACT structure.

Project: {project_name}
Instruction: {instruction}
Plan: {plan}

Sections, in order, each starting with a '# Step N: <Title>' header comment:
{steps}

The script loads the model saved by {project_name}_train.py; it never calls external APIs.

{rules}"""

STRUCTURE_DOC_TEMPLATE = """Write project documentation in Markdown for:

Project: {project_name}
Instruction: {instruction}
Plan: {plan}
Flow Type: {flow_type}

Cover: the recommended folder tree (as a fenced code block), where to place
{project_name}_train.py, {project_name}_train.ipynb and {project_name}_inference.py,
dependencies with install commands, setup, how to run training and inference,
expected input data format and location, where models and results are written,
and a short troubleshooting section.
{flow_note}"""


def _numbered(steps) -> str:
    return "\n".join(f"{i}. {title}" for i, title in enumerate(steps, start=1))


def _has_code(lines: List[str]) -> bool:
    return any(s.strip() and not s.strip().startswith("#") for s in lines)


def _split_sections(script: str) -> List[str]:
    # A banner ("# ===" / "# Title" / "# ===") stays with the code below it.
    sections: List[List[str]] = [[]]
    for line in script.splitlines():
        if _SECTION_RE.match(line.strip()) and _has_code(sections[-1]):
            sections.append([])
        if _RULE_ONLY_RE.match(line.strip()):
            continue
        sections[-1].append(line)
    return [body for body in ("\n".join(s).strip("\n") for s in sections) if body.strip()]


def build_training_notebook(project_name: str, instruction: str, script: str) -> Dict:
    """Notebook built locally from the training script: a title cell, then one code cell per section."""
    cells = [markdown_cell(f"# {project_name} - Training\n\n{instruction.strip()}")]
    cells.extend(code_cell(section) for section in _split_sections(script))
    nb = new_notebook(cells)
    validate_notebook(nb)
    return nb


class ScriptGenerator:
    """Single-script mode: training script, training notebook, inference script and a structure guide."""

    def __init__(
        self,
        client: Optional[LLMClient] = None,
        *,
        repair: bool = True,
        logger: Optional[LogFn] = None,
    ) -> None:
        self.client = client or LLMClient(logger=logger)
        self.repair = repair
        self.logger = logger

    def _ask(self, prompt: str, model: Optional[str], tag: str) -> str:
        return extract_content(self.client.chat([{"role": "user", "content": prompt}], model=model, tag=tag))

    def _python(self, prompt: str, model: Optional[str], tag: str) -> str:
        code = clean_content(self._ask(prompt, model, tag))
        report = validate_python(code)
        if report.valid:
            log(f"[scripts] {tag}: syntax check passed", self.logger)
            return code
        log(f"[scripts] {tag}: {'; '.join(report.errors)}", self.logger)
        if self.repair:
            code, fixes = repair_python(code, logger=self.logger)
            if fixes:
                log(f"[scripts] {tag}: repaired ({', '.join(fixes)})", self.logger)
        return code

    def generate_files(
        self,
        project_name: str,
        instruction: str,
        flow_type: str,
        plan: str,
        model: Optional[str] = None,
    ) -> List[GeneratedFile]:
        if flow_type not in FLOW_TYPES:
            raise ValueError(f"flow_type must be one of {FLOW_TYPES}, got {flow_type!r}")
        name = safe_project_name(project_name)
        ctx = {"project_name": name, "instruction": instruction, "plan": plan, "rules": _SYNTAX_RULES}

        if flow_type == "predefined":
            train_prompt = TRAIN_PREDEFINED_TEMPLATE.format(steps=_numbered(PREDEFINED_TRAIN_STEPS), **ctx)
            infer_prompt = INFERENCE_PREDEFINED_TEMPLATE.format(steps=_numbered(PREDEFINED_INFERENCE_STEPS), **ctx)
            flow_note = "This project follows the predefined, step-by-step script structure."
        else:
            train_prompt = TRAIN_CUSTOM_TEMPLATE.format(**ctx)
            infer_prompt = INFERENCE_CUSTOM_TEMPLATE.format(**ctx)
            flow_note = "This project uses a custom layout tailored to the use case."

        log(f"[scripts] {name}: {flow_type} flow", self.logger)
        train = self._python(train_prompt, model, "scripts:train")
        notebook = build_training_notebook(name, instruction, train)
        inference = self._python(infer_prompt, model, "scripts:inference")
        structure = self._ask(
            STRUCTURE_DOC_TEMPLATE.format(flow_type=flow_type, flow_note=flow_note, **ctx),
            model,
            "scripts:structure",
        ).strip() + "\n"

        return [
            GeneratedFile(f"{name}_train.py", train, "python"),
            GeneratedFile(f"{name}_train.ipynb", json.dumps(notebook, indent=1, ensure_ascii=False) + "\n", "notebook"),
            GeneratedFile(f"{name}_inference.py", inference, "python"),
            GeneratedFile(f"{name}_structure.md", structure, "markdown"),
        ]
