from __future__ import annotations

import json
import os
from typing import Any, Dict, List, Optional

import httpx

from tools.llm_utils import RateGate, global_gate
from tools.log_sink import LogFn, log

DEFAULT_BASE_URL = "https://openrouter.ai/api/v1"
DEFAULT_MODEL = "kwaipilot/kat-coder-pro:free"


# ---------------------
# Errors
# ---------------------

class LLMError(RuntimeError):
    """Any failure talking to the chat-completion API."""


class LLMConfigError(LLMError):
    pass


class LLMTimeoutError(LLMError):
    pass


class LLMHTTPError(LLMError):
    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code


class LLMAuthError(LLMHTTPError):
    pass


class LLMRateLimitError(LLMHTTPError):
    pass


class LLMResponseError(LLMError):
    pass


def _clean_env(s: Optional[str]) -> Optional[str]:
    if s is None:
        return None
    s = s.strip()
    if (s.startswith('"') and s.endswith('"')) or (s.startswith("'") and s.endswith("'")):
        s = s[1:-1]
    return s.strip() or None


# ---------------------
# Client
# ---------------------

class LLMClient:
    """
    OpenRouter-compatible chat client (env-configured) with:
      • one attempt per call (no retries),
      • a wall-clock timeout per request,
      • the shared minimum-interval gate between consecutive calls,
      • tagged request/response logging.

    ENV:
      - OPENROUTER_API_KEY (required to actually call out)
      - LLM_BASE_URL   (default https://openrouter.ai/api/v1)
      - LLM_MODEL      (default kwaipilot/kat-coder-pro:free)
      - LLM_TIMEOUT    (seconds, default 60)
      - LLM_TEMPERATURE (forwarded only when set)
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        *,
        base_url: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
        app_title: str = "Universal AI Project Generator",
        referer: str = "https://ai-project-generator.local",
        gate: Optional[RateGate] = None,
        transport: Optional[httpx.BaseTransport] = None,
        logger: Optional[LogFn] = None,
    ) -> None:
        self.api_key = api_key or _clean_env(os.getenv("OPENROUTER_API_KEY"))
        self.base_url = (base_url or _clean_env(os.getenv("LLM_BASE_URL")) or DEFAULT_BASE_URL).rstrip("/")
        self.model = model or _clean_env(os.getenv("LLM_MODEL")) or DEFAULT_MODEL
        self.timeout = float(timeout if timeout is not None else (_clean_env(os.getenv("LLM_TIMEOUT")) or "60"))
        temp = _clean_env(os.getenv("LLM_TEMPERATURE"))
        self.temperature: Optional[float] = float(temp) if temp else None
        self.gate = gate or global_gate()
        self.logger = logger
        self._transport = transport
        self._headers = {
            "Content-Type": "application/json",
            "HTTP-Referer": referer,
            "X-Title": app_title,
        }

        log(
            f"[llm:init] model={self.model} base={self.base_url} "
            f"timeout={self.timeout}s min_interval={self.gate.min_interval_ms}ms",
            None,
        )

    # ---------------- Chat APIs ----------------

    def chat(
        self,
        messages: List[Dict[str, str]],
        *,
        model: Optional[str] = None,
        tag: str = "chat",
        **kwargs: Any,
    ) -> Dict[str, Any]:
        """
        POST one chat-completion request and return the decoded JSON body.
        Raises an LLMError subclass on timeout, transport failure or non-2xx.
        """
        if not self.api_key:
            raise LLMConfigError("Missing env: OPENROUTER_API_KEY")

        url = f"{self.base_url}/chat/completions"
        payload: Dict[str, Any] = {
            "model": model or self.model,
            "messages": messages,
            "stream": False,
        }
        if self.temperature is not None:
            payload["temperature"] = self.temperature
        payload.update(kwargs)

        prompt_chars = sum(len(m.get("content", "")) for m in messages)
        kwargs_preview = {k: payload[k] for k in payload if k != "messages"}
        log(
            f"[llm:req] tag={tag} POST {url} prompt_chars={prompt_chars} "
            f"kwargs={json.dumps(kwargs_preview, ensure_ascii=False)}",
            self.logger,
        )

        self.gate.wait(tag=tag, logger=self.logger)

        headers = dict(self._headers, Authorization=f"Bearer {self.api_key}")
        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                r = client.post(url, headers=headers, json=payload)
        except httpx.TimeoutException as e:
            log(f"[llm:timeout] tag={tag} after {self.timeout}s", self.logger)
            raise LLMTimeoutError(f"Request timed out after {self.timeout:.0f}s") from e
        except httpx.HTTPError as e:
            log(f"[llm:exc] tag={tag} exc={type(e).__name__}: {e}", self.logger)
            raise LLMError(f"Connection to AI service failed: {e}") from e

        if r.status_code // 100 != 2:
            preview = r.text[:500].replace("\n", "\\n")
            log(f"[llm:err] tag={tag} status={r.status_code} body≈{preview}", self.logger)
            message = f"OpenRouter API error: {r.status_code} {r.reason_phrase}".rstrip()
            if r.status_code in (401, 403):
                raise LLMAuthError(r.status_code, message)
            if r.status_code == 429:
                raise LLMRateLimitError(r.status_code, message)
            raise LLMHTTPError(r.status_code, message)

        try:
            data = r.json()
        except ValueError as e:
            raise LLMResponseError(f"Malformed LLM response (not JSON): {r.text[:200]}") from e
        log(f"[llm:ok] tag={tag} status={r.status_code} len={len(r.text)}", self.logger)
        return data

    def complete(
        self,
        prompt: str,
        *,
        model: Optional[str] = None,
        tag: str = "complete",
        **kwargs: Any,
    ) -> str:
        """Send a single user message and return the assistant text."""
        resp = self.chat([{"role": "user", "content": prompt}], model=model, tag=tag, **kwargs)
        return extract_content(resp)


def extract_content(resp: Dict[str, Any]) -> str:
    try:
        content = resp["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError) as e:
        raise LLMResponseError(f"Malformed LLM response: {str(resp)[:200]}") from e
    if content is None:
        return ""
    if not isinstance(content, str):
        raise LLMResponseError(f"LLM response content is not text: {type(content).__name__}")
    return content
