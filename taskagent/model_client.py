# -*- coding: utf-8 -*-

import logging
import os
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import requests

from .config import CONTEXT_MAX_CHARS, DEFAULT_MAX_TOKENS, DEFAULT_TIMEOUT
from .parse import ResponseContent, TextContent, ToolInvocation, classify_content
from .trace import TraceLog

LOGGER = logging.getLogger(__name__)


class ModelConfigError(RuntimeError):
    """The completion service cannot be reached as configured."""


class ModelRequestError(RuntimeError):
    """A completion request failed or returned an unusable payload."""


@dataclass
class Usage:
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    @classmethod
    def from_dict(cls, raw: Optional[dict]) -> "Usage":
        raw = raw or {}

        def _int(key: str) -> int:
            value = raw.get(key)
            return value if isinstance(value, int) else 0

        return cls(_int("prompt_tokens"), _int("completion_tokens"), _int("total_tokens"))


@dataclass
class ResponseMessage:
    content: ResponseContent
    role: str = "assistant"
    usage: Usage = field(default_factory=Usage)
    raw_text: str = ""

    def content_to_string(self) -> str:
        if isinstance(self.content, ToolInvocation):
            args = ", ".join(f"{k!r}: {v!r}" for k, v in self.content.arguments.items())
            return f"tool_call: {self.content.name}, arguments: {args}"
        return self.content.text


class OpenAICompatClient:
    def __init__(self, base_url: str, model: str | None = None, api_key: str | None = None):
        if not (base_url or "").strip():
            raise ModelConfigError("Missing completion service base URL (set MODEL_BASE_URL)")
        self.base_url = base_url.rstrip("/")
        self.model = (model or "").strip()
        self.api_key = api_key or os.getenv("OPENAI_API_KEY", "")

    @staticmethod
    def normalize_base_url(base_url: str) -> str:
        """
        Accept either:
        - http://host:port/v1  (OpenAI-style base)
        - http://host:port     (llama.cpp / LM Studio default), and normalize to /v1
        """
        base_url = (base_url or "").strip().rstrip("/")
        if not base_url:
            return base_url
        if base_url.endswith("/v1"):
            return base_url
        return base_url + "/v1"

    def chat_raw(self, messages, temperature=0.2, max_tokens=DEFAULT_MAX_TOKENS) -> dict:
        base = self.normalize_base_url(self.base_url)
        url = f"{base}/chat/completions"
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        payload = {"messages": messages, "temperature": temperature, "max_tokens": max_tokens}
        if self.model:
            payload["model"] = self.model

        t0 = time.perf_counter()
        try:
            r = requests.post(url, headers=headers, json=payload, timeout=DEFAULT_TIMEOUT)
            r.raise_for_status()
            data = r.json()
        except requests.JSONDecodeError as exc:
            raise ModelRequestError(f"Completion response is not JSON: {exc}") from exc
        except requests.HTTPError as exc:
            status = exc.response.status_code if exc.response is not None else None
            if status in (401, 403):
                raise ModelConfigError(f"Completion service rejected credentials (HTTP {status})") from exc
            raise ModelRequestError(f"Completion request failed: {exc}") from exc
        except requests.RequestException as exc:
            raise ModelRequestError(f"Completion request transport error: {exc}") from exc
        if not isinstance(data, dict):
            raise ModelRequestError("Completion response parsing error: expected top-level object")
        data["_latency_s"] = time.perf_counter() - t0
        return data

    def chat(self, messages, temperature=0.2, max_tokens=DEFAULT_MAX_TOKENS) -> str:
        data = self.chat_raw(messages, temperature=temperature, max_tokens=max_tokens)
        return reply_text(data)


def reply_text(data: dict) -> str:
    try:
        content = data["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError) as exc:
        raise ModelRequestError(f"Completion response missing choices[0].message.content: {exc}") from exc
    return content if isinstance(content, str) else ""


class ChatSession:
    """
    Owns the running request history. Every `complete` call appends its system
    and user messages; assistant replies are appended only when asked to.
    """

    def __init__(
        self,
        client,
        temperature: float = 0.2,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        max_context_chars: int = CONTEXT_MAX_CHARS,
        trace: Optional[TraceLog] = None,
        base_system_prompt: Optional[str] = None,
    ):
        self.client = client
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.max_context_chars = max_context_chars
        self.trace = trace or TraceLog()
        self.messages: List[Dict[str, str]] = []
        self.usage = Usage()
        self.calls = 0
        if base_system_prompt:
            self.messages.append({"role": "system", "content": base_system_prompt})
        self._pinned = len(self.messages)

    def _context(self) -> List[Dict[str, str]]:
        # Drop the oldest unpinned messages until the view fits; the latest
        # system/user pair is always kept.
        pinned = self.messages[:self._pinned]
        rest = list(self.messages[self._pinned:])

        def _total(items: List[Dict[str, str]]) -> int:
            return sum(len(m.get("content", "")) for m in items)

        while len(rest) > 2 and _total(pinned + rest) > self.max_context_chars:
            rest.pop(0)
        return pinned + rest

    def complete(self, system_prompt: str, user_input: str, remember_reply: bool = False, scope: str = "agent") -> ResponseMessage:
        self.messages.append({"role": "system", "content": system_prompt})
        self.messages.append({"role": "user", "content": user_input})
        context = self._context()

        raw = self.client.chat_raw(context, temperature=self.temperature, max_tokens=self.max_tokens)
        text = reply_text(raw)
        self.calls += 1
        usage = Usage.from_dict(raw.get("usage"))
        self.usage = Usage(
            self.usage.prompt_tokens + usage.prompt_tokens,
            self.usage.completion_tokens + usage.completion_tokens,
            self.usage.total_tokens + usage.total_tokens,
        )
        if remember_reply:
            self.messages.append({"role": "assistant", "content": text})

        role = "assistant"
        try:
            role = raw["choices"][0]["message"].get("role") or role
        except (KeyError, IndexError, TypeError, AttributeError):
            pass
        message = ResponseMessage(content=classify_content(text), role=role, usage=usage, raw_text=text)
        self.trace.event(
            {
                "type": "model",
                "scope": scope,
                "call": self.calls,
                "n_messages": len(context),
                "input_chars": sum(len(m.get("content", "")) for m in context),
                "latency_s": float(raw.get("_latency_s") or 0.0),
                "usage": raw.get("usage") or {},
                "tool_call": message.content.name if isinstance(message.content, ToolInvocation) else None,
                "content": text,
            }
        )
        return message

    def complete_text(self, system_prompt: str, user_input: str, scope: str = "agent") -> str:
        """Like `complete`, but always returns the reply as plain text."""
        msg = self.complete(system_prompt, user_input, scope=scope)
        if isinstance(msg.content, TextContent):
            return msg.content.text
        return msg.raw_text
