import json

import pytest

from plan_scaffold import file_filter as ff
from plan_scaffold.placeholders import failure_placeholder, placeholder_for
from plan_scaffold.sanitize import safe_project_name, sanitize_relpath


@pytest.mark.parametrize(
    "path,category",
    [
        ("data/train.csv", ff.TABULAR),
        ("src/model.pt", ff.WEIGHTS),
        ("media/intro.MP4", ff.VIDEO),
        ("samples/voice.wav", ff.AUDIO),
        ("docs/diagram.png", ff.IMAGE),
        ("raw/archive.tar", ff.ARCHIVE),
        ("app.sqlite3", ff.DATABASE),
        ("Makefile", ff.NO_EXTENSION),
        ("setup.py", ff.USER_MANAGED),
        ("pyproject.toml", ff.USER_MANAGED),
        ("assets/logo.svg", ff.USER_DATA),
        ("Data/readme.txt", ff.USER_DATA),
        ("models/weights/best.bin", ff.USER_DATA),
        ("src/datasets.py", ff.SOURCE),
        ("datasets.py", ff.SOURCE),
        ("src/main.py", ff.SOURCE),
    ],
)
def test_classify(path, category):
    """Test the first matching rule decides the category."""
    assert ff.classify(path) == category


def test_should_generate():
    """Test only source files go to the model."""
    assert ff.should_generate("src/train.py")
    assert not ff.should_generate("data/train.csv")


def test_tabular_placeholders():
    """Test dataset placeholders carry a pandas loader for the format."""
    csv = placeholder_for("data/train.csv")
    assert csv.startswith("# PLACEHOLDER: data/train.csv\n")
    assert 'pd.read_csv("data/train.csv")' in csv
    assert 'sep="\\t"' in placeholder_for("data/train.tsv")
    assert "pd.read_parquet" in placeholder_for("data/features.parquet")


def test_media_and_weights_placeholders():
    """Test loaders named in media, weights and database placeholders."""
    assert "cv2.VideoCapture" in placeholder_for("clips/a.mp4")
    assert "librosa.load" in placeholder_for("clips/a.wav")
    assert "Image.open" in placeholder_for("img/a.jpg")
    weights = placeholder_for("checkpoints/model.pkl")
    assert 'joblib.load("checkpoints/model.pkl")' in weights
    assert "torch.load" in weights
    assert "sqlite3.connect" in placeholder_for("store.db")


def test_placeholder_explicit_category():
    """Test a caller-supplied category overrides classification."""
    body = placeholder_for("setup.py", ff.USER_MANAGED)
    assert body.startswith("# PLACEHOLDER: setup.py")
    assert "Packaging file" in body


def test_failure_placeholder_json_stays_valid():
    """Test a failed JSON file is still parseable JSON."""
    body = failure_placeholder("configs/app.json", RuntimeError("boom"))
    doc = json.loads(body)
    assert doc == {"_generation_failed": True, "path": "configs/app.json", "error": "boom"}


def test_failure_placeholder_comment_styles():
    """Test the comment syntax follows the file type."""
    py = failure_placeholder("src/a.py", RuntimeError("timed out"))
    assert py.splitlines()[0] == "# GENERATION FAILED: src/a.py"
    assert "# Error: timed out" in py
    md = failure_placeholder("README.md", RuntimeError("x"))
    assert md.startswith("<!--\n") and md.rstrip().endswith("-->")
    css = failure_placeholder("web/site.css", RuntimeError("x"))
    assert css.startswith("/*\n")
    assert failure_placeholder("db/init.sql", RuntimeError("x")).startswith("-- GENERATION FAILED")


def test_failure_placeholder_uses_type_name_without_message():
    """Test errors with empty messages still get a reason."""
    assert "Error: TimeoutError" in failure_placeholder("a.py", TimeoutError())


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("src/main.py", "src/main.py"),
        ("./src//main.py", "src/main.py"),
        ("/etc/passwd", None),
        ("../escape.py", None),
        ("src/../../x.py", None),
        ("src/my file.py", None),
        ("", None),
    ],
)
def test_sanitize_relpath(raw, expected):
    """Test unsafe archive paths are rejected."""
    assert sanitize_relpath(raw) == expected


def test_safe_project_name():
    """Test project names become safe archive roots."""
    assert safe_project_name("My ML Project!") == "My_ML_Project"
    assert safe_project_name("  ..  ") == "project"
    assert safe_project_name(None) == "project"
    assert safe_project_name("demo-1.0") == "demo-1.0"


def test_user_placeholders_follow_file_syntax():
    """Test placeholders for JSON and Markdown paths stay valid for their type."""
    doc = json.loads(placeholder_for("data/config.json"))
    assert doc["_placeholder"] is True
    assert doc["path"] == "data/config.json"
    assert doc["category"] == ff.USER_DATA
    assert any("data directory" in note for note in doc["notes"])

    md = placeholder_for("data/README.md")
    assert md.startswith("<!--\nPLACEHOLDER: data/README.md\n")
    assert md.endswith("-->\n")

    sql = placeholder_for("data/schema.sql")
    assert sql.startswith("-- PLACEHOLDER: data/schema.sql\n")
