# plan_scaffold/validator.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from tools.log_sink import LogFn, log

from .extractor import PlanStructure
from .generator import ORIGIN_FAILED, ORIGIN_PLACEHOLDER, ProjectFile


@dataclass
class StructureReport:
    missing: List[str] = field(default_factory=list)
    unexpected: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    placeholders: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.missing and not self.unexpected

    def __str__(self) -> str:
        return (
            f"missing={len(self.missing)}, unexpected={len(self.unexpected)}, "
            f"failed={len(self.failed)}, placeholders={len(self.placeholders)}"
        )


def validate_structure(
    plan: PlanStructure,
    files: Iterable[ProjectFile],
    logger: Optional[LogFn] = None,
) -> StructureReport:
    """
    Compare the produced files with the plan. Advisory: problems are logged,
    never raised.
    """
    produced = list(files)
    produced_paths = {f.path for f in produced}
    planned_paths = {f.path for f in plan.files}

    report = StructureReport(
        missing=[f.path for f in plan.files if f.path not in produced_paths],
        unexpected=sorted(produced_paths - planned_paths),
        failed=[f.path for f in produced if f.origin == ORIGIN_FAILED],
        placeholders=[f.path for f in produced if f.origin == ORIGIN_PLACEHOLDER],
    )

    for path in report.missing:
        log(f"[validate] missing planned file: {path}", logger)
    for path in report.unexpected:
        log(f"[validate] file not in plan: {path}", logger)
    if report.ok:
        log(f"[validate] structure matches plan ({report})", logger)
    else:
        log(f"[validate:warn] structure differs from plan ({report})", logger)
    return report
