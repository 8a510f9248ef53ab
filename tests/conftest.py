"""
Shared test fixtures: a scripted stand-in for the chat client and env isolation.
"""
import threading
from typing import Callable, Dict, List, Optional, Union

import pytest

Responder = Callable[[List[Dict[str, str]], str], Union[str, Exception]]


class FakeLLM:
    """Duck-types LLMClient.chat; answers come from a responder(messages, tag)."""

    def __init__(self, responder: Optional[Responder] = None) -> None:
        self.responder = responder or (lambda messages, tag: "ok")
        self.calls: List[Dict] = []
        self._lock = threading.Lock()

    def chat(self, messages, *, model=None, tag="chat", **kwargs):
        with self._lock:
            self.calls.append({"messages": messages, "model": model, "tag": tag, "kwargs": kwargs})
        result = self.responder(messages, tag)
        if isinstance(result, Exception):
            raise result
        return {"choices": [{"message": {"role": "assistant", "content": result}}]}

    @property
    def tags(self) -> List[str]:
        return [c["tag"] for c in self.calls]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep developer env settings out of the tests."""
    for name in (
        "LLM_DEBUG",
        "LLM_LOG_FILE",
        "LLM_TEMPERATURE",
        "LLM_MODEL",
        "LLM_BASE_URL",
        "LLM_TIMEOUT",
        "LLM_MIN_INTERVAL_MS",
        "LLM_PLAN_MAX_TOKENS",
        "SCAFFOLD_MAX_WORKERS",
        "SESSION_TTL_S",
        "SESSION_MAX_ENTRIES",
        "OPENROUTER_API_KEY",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def fake_llm():
    """Factory: fake_llm(responder) -> FakeLLM."""
    return FakeLLM


@pytest.fixture
def sample_plan() -> str:
    return (
        "# Sentiment Classifier\n"
        "\n"
        "PROJECT STRUCTURE\n"
        "\n"
        "```\n"
        "proj/\n"
        "├── README.md            # project documentation\n"
        "├── requirements.txt\n"
        "├── src/\n"
        "│   ├── model.py         # model architecture\n"
        "│   └── train.py         # training loop\n"
        "└── data/\n"
        "    └── train.csv        # labelled reviews\n"
        "```\n"
        "\n"
        "The model is a small transformer fine-tuned on the reviews.\n"
    )
