# plan_scaffold/generator.py
from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Optional

from tools.llm_client import LLMClient, extract_content
from tools.log_sink import LogFn, log

from .extractor import FileSpec

__all__ = [
    "GenerationTask",
    "ProjectFile",
    "ContentGenerator",
    "ORIGIN_GENERATED",
    "ORIGIN_PLACEHOLDER",
    "ORIGIN_FAILED",
]

ORIGIN_GENERATED = "generated"
ORIGIN_PLACEHOLDER = "placeholder"
ORIGIN_FAILED = "failed"


@dataclass(frozen=True)
class GenerationTask:
    file: FileSpec
    project_name: str
    instruction: str
    plan: str
    model: Optional[str] = None


@dataclass
class ProjectFile:
    path: str
    content: str
    type: str
    origin: str = ORIGIN_GENERATED
    duration_ms: int = 0
    error: Optional[str] = None

    @property
    def size_kb(self) -> float:
        return round(len(self.content) / 1024, 2)


SYSTEM_FILE = """You are an expert AI/ML engineer writing one file of a larger project.
You answer with the raw contents of that single file and nothing else."""

USER_FILE_TEMPLATE = """Generate production-ready content for: {path}

PROJECT CONTEXT:
Project: {project_name}
Task: {instruction}
File Purpose: {description}
File Type: {file_type}

COMPLETE PROJECT PLAN:
{plan}

REQUIREMENTS:
1. Output ONLY the raw file content: no markdown code fences, no explanations, no wrapper text.
2. Follow the architecture, names and paths given in the plan exactly.
3. The file must be syntactically valid and runnable as-is.
4. Python files: type hints, docstrings, real error handling, device handling for ML code,
   checkpointing and metric logging where training happens.
5. Config files: every hyperparameter, data path and model setting the plan mentions.
6. Documentation: setup, training, evaluation and inference instructions.

Generate the complete {file_type} file content for {path}:"""


def build_file_prompt(task: GenerationTask) -> str:
    return USER_FILE_TEMPLATE.format(
        path=task.file.path,
        project_name=task.project_name,
        instruction=task.instruction,
        description=task.file.description,
        file_type=task.file.type,
        plan=task.plan,
    )


class ContentGenerator:
    """One chat-completion request per file. Upstream errors propagate as LLMError."""

    def __init__(self, client: Optional[LLMClient] = None, logger: Optional[LogFn] = None) -> None:
        self.client = client or LLMClient(logger=logger)
        self.logger = logger

    def generate(self, task: GenerationTask) -> str:
        messages = [
            {"role": "system", "content": SYSTEM_FILE},
            {"role": "user", "content": build_file_prompt(task)},
        ]
        t0 = time.monotonic()
        resp = self.client.chat(messages, model=task.model, tag=f"gen:{task.file.path}")
        content = extract_content(resp)
        log(
            f"[gen] {task.file.path}: {len(content)} chars in {int((time.monotonic() - t0) * 1000)}ms",
            self.logger,
        )
        return content
