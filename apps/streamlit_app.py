# apps/streamlit_app.py
from __future__ import annotations

# ---------- import bootstrap (make project root importable) ----------
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]  # repo root
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
# --------------------------------------------------------------------

import os
import uuid

import streamlit as st
from dotenv import find_dotenv, load_dotenv

# Load .env early so the key badge reflects it before the first run
load_dotenv(find_dotenv(usecwd=True) or (ROOT / ".env"), override=False)

from plan_scaffold.core import GenerateOptions, ProjectGenerator
from plan_scaffold.extractor import extract_structure
from plan_scaffold.file_filter import classify, SOURCE
from plan_scaffold.planner import PlanGenerationError, Planner
from plan_scaffold.progress import COMPLETE, ERROR, FILE_COMPLETE, FILE_ERROR, ProgressEvent
from plan_scaffold.sanitize import safe_project_name
from plan_scaffold.session_cache import SessionCache
from tools.llm_client import DEFAULT_MODEL
from tools.zip_utils import preview_zip


@st.cache_resource
def get_session_cache() -> SessionCache:
    """One cache per server process, so finished archives outlive reruns."""
    return SessionCache()


st.set_page_config(page_title="AI Project Generator", layout="wide")
st.title("🤖 AI Project Generator")

for key, default in (
    ("plan", ""),
    ("log_messages", []),
    ("session_id", None),
    ("project_name", ""),
):
    if key not in st.session_state:
        st.session_state[key] = default

# ---- Sidebar Configuration ----
with st.sidebar:
    st.subheader("⚙️ Options")
    model = st.text_input("Model", value=os.getenv("LLM_MODEL", DEFAULT_MODEL))
    workers = st.number_input(
        "Concurrent file generations",
        min_value=1,
        max_value=8,
        value=int(os.getenv("SCAFFOLD_MAX_WORKERS", "1") or 1),
    )
    repair = st.checkbox("Repair obvious Python syntax slips", value=True)

    st.subheader("LLM Limits")
    st.caption(
        f"Timeout: {os.getenv('LLM_TIMEOUT', '60')}s  |  "
        f"Min interval: {os.getenv('LLM_MIN_INTERVAL_MS', '1000')}ms"
    )
    st.caption(f"OPENROUTER_API_KEY set: {'✅' if os.getenv('OPENROUTER_API_KEY') else '❌'}")

# ---- Step 1: plan ----
st.markdown("### 1. Describe the project")
project_name = st.text_input("Project name", value=st.session_state.project_name or "my-ml-project")
instruction = st.text_area(
    "What should it do?",
    height=120,
    placeholder="e.g. Sentiment classifier on IMDB reviews with a FastAPI inference endpoint",
)

col_plan, col_rethink = st.columns([0.5, 0.5])
want_plan = col_plan.button("📝 Generate plan", type="primary", disabled=not instruction.strip())
feedback = col_rethink.text_input("Feedback for a revised plan (empty = alternative plan)")
want_rethink = col_rethink.button("🔁 Rethink plan", disabled=not instruction.strip())

if want_plan or want_rethink:
    planner = Planner()
    try:
        with st.spinner("Asking the model for a plan…"):
            if want_plan:
                st.session_state.plan = planner.generate_plan(project_name, instruction, model=model or None)
            else:
                st.session_state.plan = planner.rethink_plan(
                    project_name, instruction, feedback=feedback, model=model or None
                )
        st.session_state.project_name = project_name
    except PlanGenerationError as e:
        st.error(str(e))

plan_text = st.text_area("Plan (editable)", key="plan", height=360)

# ---- Step 2: structure preview ----
if plan_text.strip():
    structure = extract_structure(plan_text, root_hint=project_name)
    st.markdown("### 2. Project structure")
    if structure.is_empty:
        st.warning("No folder or file tree found in the plan. Ask for a plan with a PROJECT STRUCTURE tree.")
    else:
        rows = []
        for f in structure.files:
            category = classify(f.path)
            rows.append({
                "path": f.path,
                "type": f.type,
                "action": "generate" if category == SOURCE else f"placeholder ({category})",
                "description": f.description,
            })
        c1, c2 = st.columns([0.3, 0.7])
        with c1:
            st.caption(f"{len(structure.folders)} folders")
            st.code("\n".join(f"{d}/" for d in structure.folders) or "(none)", language="text")
        with c2:
            st.caption(f"{len(structure.files)} files")
            st.dataframe(rows, use_container_width=True, hide_index=True)

    # ---- Step 3: generate ----
    st.markdown("### 3. Generate")
    run = st.button("✨ Generate project", type="primary", disabled=structure.is_empty)
    log_container = st.container()

    if run:
        st.session_state.log_messages = []
        session_id = uuid.uuid4().hex
        st.session_state.session_id = session_id
        st.session_state.project_name = project_name

        bar = st.progress(0, text="Starting…")
        status = st.empty()

        def ui_log(m: str) -> None:
            st.session_state.log_messages.append(m)

        gen = ProjectGenerator(
            options=GenerateOptions(max_workers=int(workers), repair_python=repair),
            cache=get_session_cache(),
            logger=ui_log,
        )

        def on_progress(event: ProgressEvent) -> None:
            if event.progress is not None:
                bar.progress(min(100, max(0, event.progress)), text=event.message)
            if event.type == FILE_COMPLETE:
                info = event.file_info or {}
                ui_log(f"✅ {info.get('path')} ({info.get('origin')}, {info.get('size')}, {info.get('duration')})")
            elif event.type == FILE_ERROR:
                ui_log(f"❌ {event.message}")
            elif event.type in (COMPLETE, ERROR):
                ui_log(event.message)
            status.caption(event.message)

        try:
            with st.spinner("Generating files…"):
                gen.generate_project_stream(
                    project_name, instruction, plan_text, session_id,
                    model=model or None, progress=on_progress,
                )
            st.success("Project generated.")
        except Exception as e:
            st.error(f"Generation failed: {e}")

        with log_container:
            with st.expander("🪵 Run Logs", expanded=False):
                st.text_area(
                    "Logs",
                    "\n".join(st.session_state.log_messages),
                    height=260,
                    label_visibility="collapsed",
                )

# ---- Step 4: download + preview ----
if st.session_state.session_id:
    payload = get_session_cache().get(st.session_state.session_id)
    if payload:
        st.markdown("### 4. Download")
        zip_name = f"{safe_project_name(st.session_state.project_name)}.zip"
        st.download_button("⬇️ Download ZIP", data=payload, file_name=zip_name, mime="application/zip")

        st.subheader("🗂️ Archive contents")
        for rec in preview_zip(payload):
            with st.expander(f"{rec['rel_path']}  ·  {rec['size']} bytes"):
                if rec["content"]:
                    st.code(rec["content"], language=rec["language"])
                else:
                    st.caption("(binary or non-text file)")
    else:
        st.info("The last generated archive has expired. Generate the project again to download it.")
