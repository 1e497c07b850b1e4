from __future__ import annotations

from collections import defaultdict, deque

import pytest

from taskagent.model_client import ChatSession
from taskagent.tools import ExecResult


def chat_reply(content: str, usage: dict | None = None) -> dict:
    return {
        "choices": [{"message": {"role": "assistant", "content": content}, "finish_reason": "stop"}],
        "usage": usage or {"prompt_tokens": 10, "completion_tokens": 5, "total_tokens": 15},
    }


class ScriptedClient:
    """Replies are queued per system prompt; `calls` records (system, user) pairs."""

    def __init__(self, replies: dict[str, list[str]] | None = None, default: str = "") -> None:
        self.replies: dict[str, deque[str]] = defaultdict(deque)
        for prompt, items in (replies or {}).items():
            self.replies[prompt].extend(items)
        self.default = default
        self.calls: list[tuple[str, str]] = []
        self.message_counts: list[int] = []

    def queue(self, prompt: str, *items: str) -> None:
        self.replies[prompt].extend(items)

    def chat_raw(self, messages, temperature=0.2, max_tokens=1200) -> dict:
        system = messages[-2]["content"]
        user = messages[-1]["content"]
        self.calls.append((system, user))
        self.message_counts.append(len(messages))
        pending = self.replies.get(system)
        content = pending.popleft() if pending else self.default
        return chat_reply(content)

    def calls_for(self, prompt: str) -> list[str]:
        return [user for system, user in self.calls if system == prompt]


class FakeSandbox:
    def __init__(self, results: list[ExecResult] | None = None) -> None:
        self.results = deque(results or [])
        self.codes: list[str] = []

    def run(self, code: str) -> ExecResult:
        self.codes.append(code)
        if self.results:
            return self.results.popleft()
        return ExecResult(False, "Code execution error message: NameError: boom")


@pytest.fixture
def client() -> ScriptedClient:
    return ScriptedClient()


@pytest.fixture
def session(client: ScriptedClient) -> ChatSession:
    return ChatSession(client)
