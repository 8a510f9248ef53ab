from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from dotenv import load_dotenv

from tools.llm_client import LLMError

from .core import GenerateOptions, ProjectGenerator
from .extractor import extract_structure
from .file_filter import classify, SOURCE
from .notebook import NotebookGenerator, NotebookPlanner, format_notebook_plan, parse_notebook_plan
from .planner import PlanGenerationError, Planner
from .progress import ProgressEvent
from .sanitize import safe_project_name
from .scripts import FLOW_TYPES, ScriptGenerator


def _read(path: str) -> str:
    if path == "-":
        return sys.stdin.read()
    return Path(path).read_text(encoding="utf-8", errors="ignore")


def _write_text(text: str, out: str | None) -> None:
    if out:
        Path(out).write_text(text, encoding="utf-8")
        print(f"wrote {out}")
    else:
        print(text)


def _print_event(event: ProgressEvent) -> None:
    pct = f"{event.progress:>3}%" if event.progress is not None else "    "
    print(f"[{pct}] {event.type:<13} {event.message}", flush=True)


def cmd_plan(args) -> int:
    planner = Planner()
    if args.rethink or args.feedback:
        plan = planner.rethink_plan(args.name, args.instruction, feedback=args.feedback, model=args.model)
    else:
        plan = planner.generate_plan(args.name, args.instruction, model=args.model)
    _write_text(plan, args.out)
    return 0


def cmd_extract(args) -> int:
    structure = extract_structure(
        _read(args.plan_file),
        indent_width=args.indent_width,
        root_hint=args.root_hint,
    )
    if args.json:
        print(json.dumps({
            "folders": structure.folders,
            "files": [
                {"path": f.path, "type": f.type, "description": f.description, "generate": classify(f.path) == SOURCE}
                for f in structure.files
            ],
        }, indent=2))
        return 0

    print(f"Folders ({len(structure.folders)}):")
    for d in structure.folders:
        print(f"  / {d}")
    print(f"Files ({len(structure.files)}):")
    for f in structure.files:
        category = classify(f.path)
        mark = "+" if category == SOURCE else "·"
        suffix = "" if category == SOURCE else f"  [placeholder: {category}]"
        print(f"  {mark} {f.path}  ({f.type}) {f.description}{suffix}")
    return 0 if not structure.is_empty else 1


def cmd_generate(args) -> int:
    opts = GenerateOptions()
    if args.workers:
        opts.max_workers = args.workers
    if args.no_repair:
        opts.repair_python = False

    gen = ProjectGenerator(options=opts)
    payload = gen.generate_project(
        args.name,
        args.instruction,
        _read(args.plan_file),
        model=args.model,
        progress=None if args.quiet else _print_event,
    )
    out = Path(args.out or f"{safe_project_name(args.name)}.zip")
    out.write_bytes(payload)
    print(f"\nDONE ✅\nArchive: {out} ({len(payload)} bytes)")
    return 0


def cmd_notebook(args) -> int:
    if args.plan_file:
        plan = parse_notebook_plan(_read(args.plan_file))
    else:
        plan = NotebookPlanner().generate_plan(args.instruction, model=args.model)
    if args.plan_only:
        _write_text(format_notebook_plan(plan), args.out)
        return 0
    nb = NotebookGenerator().generate_notebook(plan, model=args.model)
    _write_text(json.dumps(nb, indent=1, ensure_ascii=False), args.out or f"{safe_project_name(plan.title)}.ipynb")
    return 0


def cmd_scripts(args) -> int:
    files = ScriptGenerator().generate_files(
        args.name, args.instruction, args.flow, _read(args.plan_file), model=args.model
    )
    dest = Path(args.dest)
    dest.mkdir(parents=True, exist_ok=True)
    for f in files:
        (dest / f.filename).write_text(f.content, encoding="utf-8")
        print(f"  + {dest / f.filename}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser("plan-scaffold", description="Plan, generate and package AI/ML projects with an LLM.")
    sub = ap.add_subparsers(dest="command", required=True)

    p = sub.add_parser("plan", help="Ask the model for a project plan")
    p.add_argument("--name", required=True, help="Project name")
    p.add_argument("--instruction", required=True, help="What to build")
    p.add_argument("--feedback", default=None, help="Revise the plan with this feedback")
    p.add_argument("--rethink", action="store_true", help="Propose an alternative plan")
    p.add_argument("--model", default=None)
    p.add_argument("--out", default=None, help="Write the plan to this file instead of stdout")
    p.set_defaults(func=cmd_plan)

    p = sub.add_parser("extract", help="Show the folders and files a plan describes (no LLM calls)")
    p.add_argument("plan_file", help="Plan text file, or '-' for stdin")
    p.add_argument("--root-hint", default=None, help="Project root folder name to strip")
    p.add_argument("--indent-width", type=int, default=None, help="Columns per tree level (inferred when omitted)")
    p.add_argument("--json", action="store_true", help="Machine-readable output")
    p.set_defaults(func=cmd_extract)

    p = sub.add_parser("generate", help="Generate every planned file and write the project ZIP")
    p.add_argument("--name", required=True)
    p.add_argument("--instruction", required=True)
    p.add_argument("--plan-file", required=True, help="Plan text file, or '-' for stdin")
    p.add_argument("--model", default=None)
    p.add_argument("--workers", type=int, default=None, help="Concurrent file generations (default from SCAFFOLD_MAX_WORKERS)")
    p.add_argument("--no-repair", action="store_true", help="Do not apply Python syntax repairs")
    p.add_argument("--out", default=None, help="ZIP path (default <name>.zip)")
    p.add_argument("--quiet", action="store_true")
    p.set_defaults(func=cmd_generate)

    p = sub.add_parser("notebook", help="Plan and generate a Jupyter notebook")
    p.add_argument("--instruction", default="", help="What the notebook should do")
    p.add_argument("--plan-file", default=None, help="Use an existing notebook plan instead of asking for one")
    p.add_argument("--plan-only", action="store_true", help="Stop after planning")
    p.add_argument("--model", default=None)
    p.add_argument("--out", default=None)
    p.set_defaults(func=cmd_notebook)

    p = sub.add_parser("scripts", help="Single-script mode: train/inference scripts, notebook and guide")
    p.add_argument("--name", required=True)
    p.add_argument("--instruction", required=True)
    p.add_argument("--plan-file", required=True)
    p.add_argument("--flow", choices=FLOW_TYPES, default="custom")
    p.add_argument("--model", default=None)
    p.add_argument("--dest", default=".", help="Output directory")
    p.set_defaults(func=cmd_scripts)
    return ap


def main(argv=None) -> int:
    load_dotenv()
    ap = build_parser()
    args = ap.parse_args(argv)
    if args.command == "notebook" and not (args.instruction or args.plan_file):
        ap.error("notebook: give --instruction or --plan-file")
    try:
        return args.func(args)
    except (PlanGenerationError, LLMError, ValueError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
