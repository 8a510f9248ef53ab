import io
import time
import zipfile

import pytest

from plan_scaffold.core import GenerateOptions, ProjectGenerator, compute_statistics
from plan_scaffold.extractor import extract_structure
from plan_scaffold.generator import ProjectFile
from plan_scaffold.progress import ProgressBroker
from plan_scaffold.session_cache import SessionCache
from plan_scaffold.validator import validate_structure
from tools.llm_client import LLMHTTPError, LLMTimeoutError


def _file_names(payload):
    with zipfile.ZipFile(io.BytesIO(payload)) as zf:
        return {i.filename: zf.read(i).decode("utf-8") for i in zf.infolist() if not i.is_dir()}


def _responder(fail=None, delay=None):
    fail = fail or {}
    delay = delay or {}

    def respond(messages, tag):
        path = tag.split(":", 1)[1]
        if path in delay:
            time.sleep(delay[path])
        if path in fail:
            return fail[path]
        return f"```python\nprint({path!r})\n```"

    return respond


def _generator(client, **options):
    return ProjectGenerator(
        client,
        options=GenerateOptions(**options),
        cache=SessionCache(ttl_s=60, max_entries=4),
        broker=ProgressBroker(heartbeat_s=0.01),
    )


def test_partial_failure_still_packages_everything(fake_llm, sample_plan):
    """Test one failed file leaves a placeholder and the run completes."""
    client = fake_llm(_responder(fail={"src/train.py": LLMHTTPError(500, "OpenRouter API error: 500 Internal Server Error")}))
    events = []
    payload = _generator(client, max_workers=1).generate_project(
        "proj", "Classify reviews", sample_plan, progress=events.append
    )

    files = _file_names(payload)
    assert sorted(files) == [
        "proj/README.md",
        "proj/data/train.csv",
        "proj/requirements.txt",
        "proj/src/model.py",
        "proj/src/train.py",
    ]
    assert files["proj/src/model.py"] == "print('src/model.py')\n"
    assert "GENERATION FAILED: src/train.py" in files["proj/src/train.py"]
    assert "500 Internal Server Error" in files["proj/src/train.py"]

    types = [e.type for e in events]
    assert types[0] == "start"
    assert types[-1] == "complete"
    assert types.index("validating") < types.index("packaging") < types.index("complete")
    (error_event,) = [e for e in events if e.type == "file_error"]
    assert error_event.file_info["path"] == "src/train.py"
    assert error_event.message.startswith("Failed to generate src/train.py")
    stats = events[-1].statistics
    assert stats["totalFiles"] == 5
    assert stats["failedFiles"] == 1
    assert stats["placeholderFiles"] == 1


def test_user_provided_files_never_reach_the_model(fake_llm, sample_plan):
    """Test data files get a placeholder without an LLM call."""
    client = fake_llm(_responder())
    payload = _generator(client).generate_project("proj", "Classify reviews", sample_plan)

    assert "gen:data/train.csv" not in client.tags
    assert len(client.calls) == 4
    assert 'pd.read_csv("data/train.csv")' in _file_names(payload)["proj/data/train.csv"]


def test_prompt_carries_plan_and_file_context(fake_llm, sample_plan):
    """Test each request names the file, its purpose and the whole plan."""
    client = fake_llm(_responder())
    _generator(client).generate_project("proj", "Classify reviews", sample_plan, model="test/model")

    call = next(c for c in client.calls if c["tag"] == "gen:src/model.py")
    user = call["messages"][-1]["content"]
    assert call["model"] == "test/model"
    assert "Generate production-ready content for: src/model.py" in user
    assert "File Purpose: model architecture" in user
    assert sample_plan in user


def test_events_follow_plan_order_with_workers(fake_llm, sample_plan):
    """Test concurrent generation still reports files in plan order."""
    client = fake_llm(_responder(delay={"README.md": 0.05, "requirements.txt": 0.02}))
    events = []
    _generator(client, max_workers=3).generate_project("proj", "x", sample_plan, progress=events.append)

    done = [e.file_info["path"] for e in events if e.type in ("file_complete", "file_error")]
    assert done == ["README.md", "requirements.txt", "src/model.py", "src/train.py", "data/train.csv"]
    started = [e.file_info["path"] for e in events if e.type == "file_start"]
    assert started == done
    assert [e.progress for e in events if e.type == "file_complete"] == [20, 40, 60, 80, 100]


def test_next_file_hint(fake_llm, sample_plan):
    """Test completion events announce the following file."""
    events = []
    _generator(fake_llm(_responder())).generate_project("proj", "x", sample_plan, progress=events.append)
    completes = [e for e in events if e.type == "file_complete"]
    assert completes[0].next_file == {"path": "requirements.txt", "type": "text"}
    assert completes[-1].next_file is None


def test_streamed_run_keeps_zip_for_download(fake_llm, sample_plan):
    """Test the stream variant stores the archive and feeds the broker."""
    gen = _generator(fake_llm(_responder()))
    payload = gen.generate_project_stream("proj", "x", sample_plan, "sess-1")

    assert gen.get_project_zip("sess-1") == payload
    assert gen.get_project_zip("sess-1") == payload
    frames = list(gen.broker.stream("sess-1"))
    assert frames[0].startswith('data: {"type": "connected"')
    assert '"type": "complete"' in frames[-1]


def test_streamed_zip_lands_in_the_callers_cache(fake_llm, sample_plan):
    """Test an empty shared cache passed in is the one the archive is stored in."""
    shared = SessionCache(ttl_s=60, max_entries=4)
    assert len(shared) == 0
    gen = ProjectGenerator(fake_llm(_responder()), cache=shared)
    assert gen.cache is shared

    payload = gen.generate_project_stream("proj", "x", sample_plan, "sess")
    assert shared.get("sess") == payload


def test_non_text_reply_becomes_failure_placeholder(fake_llm, sample_plan):
    """Test a reply whose content is a list of parts fails only that file."""
    def respond(messages, tag):
        if tag == "gen:src/model.py":
            return [{"type": "text", "text": "x = 1"}]
        return "print('ok')"

    events = []
    payload = _generator(fake_llm(respond)).generate_project(
        "proj", "x", sample_plan, progress=events.append
    )
    names = _file_names(payload)
    assert len(names) == 5
    assert "GENERATION FAILED: src/model.py" in names["proj/src/model.py"]
    assert [e.file_info["path"] for e in events if e.type == "file_error"] == ["src/model.py"]
    assert events[-1].type == "complete"


def test_stream_requires_session_id(fake_llm, sample_plan):
    """Test an empty session id is rejected before any work."""
    client = fake_llm(_responder())
    with pytest.raises(ValueError):
        _generator(client).generate_project_stream("proj", "x", sample_plan, "")
    assert client.calls == []


def test_zip_is_stored_before_complete_event(fake_llm, sample_plan):
    """Test a client reacting to 'complete' can already download."""
    gen = _generator(fake_llm(_responder()))
    seen = {}

    def on_event(event):
        if event.type == "complete":
            seen["zip"] = gen.get_project_zip("sess-2")

    payload = gen.generate_project_stream("proj", "x", sample_plan, "sess-2", progress=on_event)
    assert seen["zip"] == payload


def test_broken_progress_callback_does_not_stop_the_run(fake_llm, sample_plan):
    """Test callback errors are logged and ignored."""
    def explode(event):
        raise RuntimeError("client went away")

    payload = _generator(fake_llm(_responder())).generate_project("proj", "x", sample_plan, progress=explode)
    assert len(_file_names(payload)) == 5


def test_timeouts_become_failure_placeholders(fake_llm):
    """Test a timed-out JSON file still yields valid JSON."""
    plan = "├── config.json\n└── main.py"
    client = fake_llm(_responder(fail={"config.json": LLMTimeoutError("Request timed out after 60s")}))
    files = _file_names(_generator(client).generate_project("proj", "x", plan))
    assert '"_generation_failed": true' in files["proj/config.json"]


def test_python_repair_is_applied(fake_llm):
    """Test generated Python with a known slip is repaired."""
    plan = "└── settings.py"
    client = fake_llm(lambda messages, tag: "config {\n    'lr': 0.1\n}\n")
    files = _file_names(_generator(client).generate_project("proj", "x", plan))
    assert files["proj/settings.py"] == "config = {\n    'lr': 0.1\n}\n"

    files = _file_names(_generator(client, repair_python=False).generate_project("proj", "x", plan))
    assert files["proj/settings.py"] == "config {\n    'lr': 0.1\n}\n"


def test_packaging_error_emits_error_event(fake_llm, monkeypatch):
    """Test a fatal failure emits 'error' and propagates."""
    import plan_scaffold.core as core

    def failing_zip(*args, **kwargs):
        raise RuntimeError("disk full")

    monkeypatch.setattr(core, "build_project_zip", failing_zip)
    events = []
    with pytest.raises(RuntimeError, match="disk full"):
        _generator(fake_llm(_responder())).generate_project("proj", "x", "└── main.py", progress=events.append)
    assert events[-1].type == "error"
    assert events[-1].message == "disk full"
    assert "complete" not in [e.type for e in events]


def test_empty_plan_produces_root_only_archive(fake_llm):
    """Test a plan without a tree still completes with an empty project."""
    events = []
    payload = _generator(fake_llm(_responder())).generate_project("proj", "x", "No tree here.", progress=events.append)
    with zipfile.ZipFile(io.BytesIO(payload)) as zf:
        assert zf.namelist() == ["proj/"]
    assert events[-1].type == "complete"
    assert events[-1].statistics["totalFiles"] == 0


def test_statistics_and_structure_report():
    """Test the summary counters and the advisory structure check."""
    structure = extract_structure("├── a.py\n├── b.yaml\n└── docs/\n    └── guide.md")
    files = [
        ProjectFile("a.py", "x" * 1024, "python"),
        ProjectFile("b.yaml", "k: v\n", "yaml", origin="failed", error="boom"),
        ProjectFile("extra.txt", "", "text", origin="placeholder"),
    ]
    stats = compute_statistics(files, structure)
    assert stats["totalFiles"] == 3
    assert stats["totalFolders"] == 1
    assert stats["pythonFiles"] == 1
    assert stats["configFiles"] == 1
    assert stats["failedFiles"] == 1
    assert stats["placeholderFiles"] == 1
    assert stats["totalSize"].endswith("KB")

    logs = []
    report = validate_structure(structure, files, logger=logs.append)
    assert report.missing == ["docs/guide.md"]
    assert report.unexpected == ["extra.txt"]
    assert report.failed == ["b.yaml"]
    assert not report.ok
    assert any(line.startswith("[validate:warn]") for line in logs)


def test_minimal_plan_end_to_end(fake_llm):
    """Test the small README + src/main.py plan lands under proj/."""
    plan = "proj/\n├── README.md\n└── src/\n    └── main.py"
    payload = _generator(fake_llm(_responder())).generate_project("proj", "x", plan)
    with zipfile.ZipFile(io.BytesIO(payload)) as zf:
        assert zf.namelist() == ["proj/", "proj/src/", "proj/README.md", "proj/src/main.py"]
