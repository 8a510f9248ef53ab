# apps/pages/02_Notebook_Generator.py
from __future__ import annotations

# ---------- import bootstrap (make project root importable) ----------
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[2]  # repo root
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
# --------------------------------------------------------------------

import json
import os

import streamlit as st
from dotenv import find_dotenv, load_dotenv

load_dotenv(find_dotenv(usecwd=True) or (ROOT / ".env"), override=False)

from plan_scaffold.notebook import (
    NotebookGenerator,
    NotebookPlanner,
    NotebookValidationError,
    format_notebook_plan,
    parse_notebook_plan,
)
from plan_scaffold.sanitize import safe_project_name
from tools.llm_client import DEFAULT_MODEL, LLMError

st.set_page_config(page_title="Notebook Generator", layout="wide")
st.title("📓 Notebook Generator")

for key, default in (("nb_plan_text", ""), ("notebook", None)):
    if key not in st.session_state:
        st.session_state[key] = default

with st.sidebar:
    st.subheader("⚙️ Options")
    model = st.text_input("Model", value=os.getenv("LLM_MODEL", DEFAULT_MODEL), key="nb_model")
    st.caption(f"OPENROUTER_API_KEY set: {'✅' if os.getenv('OPENROUTER_API_KEY') else '❌'}")

instruction = st.text_area("What should the notebook do?", height=120)

c1, c2 = st.columns(2)
if c1.button("📝 Plan notebook", type="primary", disabled=not instruction.strip()):
    try:
        with st.spinner("Planning cells…"):
            plan = NotebookPlanner().generate_plan(instruction, model=model or None)
        st.session_state.nb_plan_text = format_notebook_plan(plan)
        st.session_state.notebook = None
    except LLMError as e:
        st.error(str(e))

feedback = c2.text_input("Feedback on the plan")
if c2.button("🔁 Revise plan", disabled=not (feedback.strip() and st.session_state.nb_plan_text.strip())):
    try:
        with st.spinner("Revising…"):
            plan = NotebookPlanner().revise_plan(
                parse_notebook_plan(st.session_state.nb_plan_text), feedback, model=model or None
            )
        st.session_state.nb_plan_text = format_notebook_plan(plan)
        st.session_state.notebook = None
    except LLMError as e:
        st.error(str(e))

plan_text = st.text_area("Notebook plan (editable)", key="nb_plan_text", height=360)

if plan_text.strip():
    plan = parse_notebook_plan(plan_text)
    st.caption(
        f"**{plan.title}**: {len(plan.cells)} cells "
        f"({sum(c.type == 'code' for c in plan.cells)} code, "
        f"{sum(c.type == 'markdown' for c in plan.cells)} markdown)"
    )
    if st.button("✨ Generate notebook", type="primary", disabled=not plan.cells):
        try:
            with st.spinner("Generating notebook JSON…"):
                st.session_state.notebook = NotebookGenerator().generate_notebook(plan, model=model or None)
        except (LLMError, NotebookValidationError) as e:
            st.error(f"Notebook generation failed: {e}")

nb = st.session_state.notebook
if nb:
    name = safe_project_name(parse_notebook_plan(plan_text).title) + ".ipynb"
    st.download_button(
        "⬇️ Download notebook",
        data=json.dumps(nb, indent=1, ensure_ascii=False),
        file_name=name,
        mime="application/x-ipynb+json",
    )
    for i, cell in enumerate(nb["cells"], start=1):
        source = "".join(cell.get("source", []))
        with st.expander(f"Cell {i} [{cell['cell_type']}]", expanded=i <= 2):
            if cell["cell_type"] == "markdown":
                st.markdown(source)
            else:
                st.code(source, language="python")
