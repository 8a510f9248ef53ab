# plan_scaffold/core.py
from __future__ import annotations

import os
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from tools.llm_client import LLMClient, LLMError
from tools.log_sink import LogFn, log

from . import progress as ev
from .archiver import build_project_zip
from .cleaner import clean_content, repair_python, validate_python
from .extractor import FileSpec, PlanStructure, extract_structure
from .file_filter import classify, SOURCE
from .generator import (
    ORIGIN_FAILED,
    ORIGIN_GENERATED,
    ORIGIN_PLACEHOLDER,
    ContentGenerator,
    GenerationTask,
    ProjectFile,
)
from .placeholders import failure_placeholder, placeholder_for
from .progress import ProgressBroker, ProgressCallback, ProgressEvent
from .session_cache import SessionCache
from .validator import validate_structure


def _env_workers() -> int:
    try:
        return max(1, int(os.getenv("SCAFFOLD_MAX_WORKERS", "1").strip()))
    except ValueError:
        return 1


@dataclass
class GenerateOptions:
    max_workers: int = field(default_factory=_env_workers)
    validate_python: bool = True      # advisory syntax report on generated .py files
    repair_python: bool = True        # keep a pattern repair only if it makes the file parse


def compute_statistics(files: List[ProjectFile], structure: PlanStructure) -> Dict[str, object]:
    total_size = sum(len(f.content) for f in files)
    return {
        "totalFiles": len(files),
        "totalFolders": len(structure.folders),
        "totalSize": f"{round(total_size / 1024, 2)}KB",
        "pythonFiles": sum(1 for f in files if f.type == "python"),
        "configFiles": sum(1 for f in files if f.type in ("yaml", "json")),
        "docFiles": sum(1 for f in files if f.type == "markdown"),
        "dockerFiles": sum(1 for f in files if f.type == "dockerfile"),
        "placeholderFiles": sum(1 for f in files if f.origin == ORIGIN_PLACEHOLDER),
        "failedFiles": sum(1 for f in files if f.origin == ORIGIN_FAILED),
    }


class ProjectGenerator:
    """
    Plan text in, project ZIP out.

    extract structure -> per file: LLM generation + cleaning, or a placeholder
    for user-provided files -> advisory structure check -> archive.
    A file whose generation fails becomes a failure placeholder; the run goes on.
    """

    def __init__(
        self,
        client: Optional[LLMClient] = None,
        *,
        options: Optional[GenerateOptions] = None,
        cache: Optional[SessionCache] = None,
        broker: Optional[ProgressBroker] = None,
        logger: Optional[LogFn] = None,
    ) -> None:
        # SessionCache defines __len__, so an empty shared cache is falsy
        self.client = client if client is not None else LLMClient(logger=logger)
        self.generator = ContentGenerator(self.client, logger=logger)
        self.options = options if options is not None else GenerateOptions()
        self.cache = cache if cache is not None else SessionCache(logger=logger)
        self.broker = broker if broker is not None else ProgressBroker()
        self.logger = logger

    # ---------------- public API ----------------

    def generate_project(
        self,
        project_name: str,
        instruction: str,
        plan: str,
        model: Optional[str] = None,
        progress: Optional[ProgressCallback] = None,
    ) -> bytes:
        return self._run(project_name, instruction, plan, model, progress)

    def generate_project_stream(
        self,
        project_name: str,
        instruction: str,
        plan: str,
        session_id: str,
        model: Optional[str] = None,
        progress: Optional[ProgressCallback] = None,
    ) -> bytes:
        """Same run; the ZIP is kept under `session_id` and events go to the broker too."""
        if not session_id:
            raise ValueError("session_id is required for streamed generation")
        publish = self.broker.callback(session_id)

        def fan_out(event: ProgressEvent) -> None:
            publish(event)
            if progress:
                progress(event)

        return self._run(
            project_name,
            instruction,
            plan,
            model,
            fan_out,
            store=lambda payload: self.cache.put(session_id, payload),
        )

    def get_project_zip(self, session_id: str) -> Optional[bytes]:
        return self.cache.get(session_id)

    # ---------------- pipeline ----------------

    def _emit(self, progress: Optional[ProgressCallback], event: ProgressEvent) -> None:
        if not progress:
            return
        try:
            progress(event)
        except Exception as e:
            # a gone client must not stop the run
            log(f"[progress] callback failed on {event.type}: {type(e).__name__}: {e}", self.logger)

    def _run(
        self,
        project_name: str,
        instruction: str,
        plan: str,
        model: Optional[str],
        progress: Optional[ProgressCallback],
        store: Optional[Callable[[bytes], None]] = None,
    ) -> bytes:
        def emit(event: ProgressEvent) -> None:
            self._emit(progress, event)

        try:
            structure = extract_structure(plan, root_hint=project_name, logger=self.logger)
            total = len(structure.files)
            log(f"[core] {project_name}: {len(structure.folders)} folders, {total} files", self.logger)
            emit(ProgressEvent(
                ev.START,
                "Starting AI/ML Project Generation",
                current_file=0,
                total_files=total,
                progress=0,
            ))

            files = self._produce(project_name, instruction, plan, model, structure, emit)

            emit(ProgressEvent(ev.VALIDATING, "Validating project structure...", progress=ev.VALIDATING_PERCENT))
            validate_structure(structure, files, logger=self.logger)

            emit(ProgressEvent(ev.PACKAGING, "Creating project archive...", progress=ev.PACKAGING_PERCENT))
            payload = build_project_zip(
                project_name,
                structure.folders,
                [(f.path, f.content) for f in files],
                logger=self.logger,
            )
            if store:
                store(payload)
        except Exception as e:
            log(f"[core:error] {project_name}: {type(e).__name__}: {e}", self.logger)
            emit(ProgressEvent(ev.ERROR, str(e) or "Generation failed"))
            raise

        emit(ProgressEvent(
            ev.COMPLETE,
            "AI/ML Project Generated Successfully!",
            progress=100,
            statistics=compute_statistics(files, structure),
        ))
        return payload

    def _produce(
        self,
        project_name: str,
        instruction: str,
        plan: str,
        model: Optional[str],
        structure: PlanStructure,
        emit: ProgressCallback,
    ) -> List[ProjectFile]:
        specs = structure.files
        total = len(specs)

        def make(spec: FileSpec) -> ProjectFile:
            task = GenerationTask(file=spec, project_name=project_name, instruction=instruction, plan=plan, model=model)
            return self._produce_one(task)

        def started(i: int) -> None:
            spec = specs[i]
            emit(ProgressEvent(
                ev.FILE_START,
                f"Generating {spec.path}",
                current_file=i + 1,
                total_files=total,
                progress=ev.percent(i, total),
                file_info={"path": spec.path, "type": spec.type, "description": spec.description},
            ))

        def finished(i: int, pf: ProjectFile) -> None:
            pct = ev.percent(i + 1, total)
            if pf.origin == ORIGIN_FAILED:
                emit(ProgressEvent(
                    ev.FILE_ERROR,
                    f"Failed to generate {pf.path}: {pf.error}",
                    current_file=i + 1,
                    total_files=total,
                    progress=pct,
                    file_info={"path": pf.path, "type": pf.type, "error": pf.error},
                ))
                return
            nxt = specs[i + 1] if i + 1 < total else None
            emit(ProgressEvent(
                ev.FILE_COMPLETE,
                f"Generated {pf.path}",
                current_file=i + 1,
                total_files=total,
                progress=pct,
                file_info={
                    "path": pf.path,
                    "type": pf.type,
                    "origin": pf.origin,
                    "size": f"{pf.size_kb}KB",
                    "duration": f"{pf.duration_ms}ms",
                },
                next_file={"path": nxt.path, "type": nxt.type} if nxt else None,
            ))

        out: List[ProjectFile] = []
        workers = max(1, self.options.max_workers)
        if workers == 1 or total <= 1:
            for i, spec in enumerate(specs):
                started(i)
                pf = make(spec)
                finished(i, pf)
                out.append(pf)
            return out

        # Results are reported in plan order whatever order the calls finish in.
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="scaffold-gen") as pool:
            futures = [pool.submit(make, spec) for spec in specs]
            for i, fut in enumerate(futures):
                started(i)
                pf = fut.result()
                finished(i, pf)
                out.append(pf)
        return out

    def _produce_one(self, task: GenerationTask) -> ProjectFile:
        spec = task.file
        category = classify(spec.path)
        if category != SOURCE:
            log(f"[core] placeholder ({category}): {spec.path}", self.logger)
            return ProjectFile(spec.path, placeholder_for(spec.path, category), spec.type, ORIGIN_PLACEHOLDER)

        t0 = time.monotonic()
        try:
            raw = self.generator.generate(task)
        except LLMError as e:
            log(f"[core:fail] {spec.path}: {type(e).__name__}: {e}", self.logger)
            return ProjectFile(
                spec.path,
                failure_placeholder(spec.path, e),
                spec.type,
                ORIGIN_FAILED,
                duration_ms=int((time.monotonic() - t0) * 1000),
                error=str(e) or type(e).__name__,
            )

        content = clean_content(raw)
        if spec.type == "python" and self.options.validate_python:
            report = validate_python(content)
            if not report.valid:
                log(f"[core] {spec.path}: {'; '.join(report.errors)}", self.logger)
                if self.options.repair_python:
                    content, _ = repair_python(content, logger=self.logger)
        return ProjectFile(
            spec.path,
            content,
            spec.type,
            ORIGIN_GENERATED,
            duration_ms=int((time.monotonic() - t0) * 1000),
        )
