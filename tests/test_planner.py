import pytest

from plan_scaffold.planner import PlanGenerationError, Planner
from tools.llm_client import LLMError, LLMHTTPError, LLMTimeoutError


def test_generate_plan_request(fake_llm):
    """Test the plan request and the stripped reply."""
    client = fake_llm(lambda messages, tag: "  PROJECT STRUCTURE\n├── a.py\n\n")
    plan = Planner(client).generate_plan("demo", "Detect spam", model="m/1")

    assert plan == "PROJECT STRUCTURE\n├── a.py"
    (call,) = client.calls
    assert call["tag"] == "plan"
    assert call["model"] == "m/1"
    assert call["kwargs"] == {"max_tokens": 4000, "temperature": 0.7}
    assert [m["role"] for m in call["messages"]] == ["system", "user"]
    assert "Detect spam" in call["messages"][1]["content"]
    assert "demo" in call["messages"][1]["content"]


def test_plan_token_limit_from_env(fake_llm, monkeypatch):
    """Test LLM_PLAN_MAX_TOKENS overrides the default."""
    monkeypatch.setenv("LLM_PLAN_MAX_TOKENS", "1500")
    client = fake_llm()
    Planner(client).generate_plan("demo", "x")
    assert client.calls[0]["kwargs"]["max_tokens"] == 1500


def test_rethink_with_and_without_feedback(fake_llm):
    """Test feedback selects a revision, no feedback an alternative."""
    client = fake_llm()
    planner = Planner(client)
    planner.rethink_plan("demo", "x", feedback="use PyTorch")
    planner.rethink_plan("demo", "x", feedback="   ")
    assert client.tags == ["plan:revise", "plan:alternative"]
    assert "use PyTorch" in client.calls[0]["messages"][1]["content"]


@pytest.mark.parametrize(
    "error,message",
    [
        (LLMTimeoutError("Request timed out after 60s"), "Request timeout - please try again"),
        (LLMHTTPError(502, "OpenRouter API error: 502 Bad Gateway"), "OpenRouter API error: 502 Bad Gateway"),
        (LLMError("Connection to AI service failed: refused"),
         "Connection lost to AI service - please check your internet connection and try again"),
    ],
)
def test_upstream_errors_get_user_messages(fake_llm, error, message):
    """Test each upstream failure maps to its user-facing message."""
    with pytest.raises(PlanGenerationError) as info:
        Planner(fake_llm(lambda messages, tag: error)).generate_plan("demo", "x")
    assert str(info.value) == message
    assert info.value.__cause__ is error


def test_empty_reply_is_an_error(fake_llm):
    """Test a blank model reply does not count as a plan."""
    with pytest.raises(PlanGenerationError, match="empty response"):
        Planner(fake_llm(lambda messages, tag: "  \n")).generate_plan("demo", "x")
