from __future__ import annotations

import threading

from taskagent.coding import CodeIterationLoop, Verdict, run_isolated
from taskagent.config import MAX_ITER
from taskagent.prompts import (
    CODE_PYTHON_PROMPT,
    IS_TERMINATION_PROMPT,
    ITERATE_CODING_INVALID_TEMPLATE,
    SUMMARIZE_CHAT_HISTORY_PROMPT,
)
from taskagent.tools import ExecResult

from conftest import FakeSandbox

PRIMES = "```python\nprint([p for p in range(2, 20) if all(p % d for d in range(2, p))])\n```"
ACCEPT = '{"continue_or_terminate": "TERMINATE", "key_points": ["primes listed"]}'
REJECT = '{"continue_or_terminate": "CONTINUE", "key_points": []}'


def test_always_failing_code_stops_after_max_iter(client, session) -> None:
    client.queue(CODE_PYTHON_PROMPT, *([PRIMES] * 20))
    sandbox = FakeSandbox()
    loop = CodeIterationLoop(session, sandbox.run)

    outcome = loop.iterate("primes below 20")

    assert MAX_ITER == 8
    assert outcome.success is False
    assert outcome.iterations == 8
    assert len(client.calls_for(CODE_PYTHON_PROMPT)) == 8
    assert len(sandbox.codes) == 8
    assert client.calls_for(IS_TERMINATION_PROMPT) == []
    assert all(state.verdict is Verdict.FAILED for state in outcome.history)
    assert "not accepted after 8 iteration(s)" in outcome.summary()


def test_first_prompt_and_retry_feedback(client, session) -> None:
    client.queue(CODE_PYTHON_PROMPT, PRIMES, PRIMES)
    client.queue(IS_TERMINATION_PROMPT, ACCEPT)
    sandbox = FakeSandbox([ExecResult(False, "Code execution error message: SyntaxError"), ExecResult(True, "[2, 3]\n")])

    outcome = CodeIterationLoop(session, sandbox.run).iterate("primes below 20")

    prompts = client.calls_for(CODE_PYTHON_PROMPT)
    assert prompts[0] == "Here is the task for you: primes below 20"
    assert prompts[1].startswith("Failed to execute the code:\n")
    assert prompts[1].endswith("got the following errors:\nCode execution error message: SyntaxError")
    assert outcome.success is True
    assert outcome.iterations == 2
    assert outcome.summary() == "[2, 3]\n"


def test_judge_sees_start_prompt(client, session) -> None:
    client.queue(CODE_PYTHON_PROMPT, PRIMES)
    client.queue(IS_TERMINATION_PROMPT, ACCEPT)

    CodeIterationLoop(session, FakeSandbox([ExecResult(True, "[2, 3]")]).run).iterate("primes")

    [judge_input] = client.calls_for(IS_TERMINATION_PROMPT)
    assert "'Here is the task for you: primes'" in judge_input
    assert "[2, 3]" in judge_input


def test_incorrect_result_feeds_back(client, session) -> None:
    client.queue(CODE_PYTHON_PROMPT, PRIMES, PRIMES)
    client.queue(IS_TERMINATION_PROMPT, REJECT, ACCEPT)
    sandbox = FakeSandbox([ExecResult(True, "[4]"), ExecResult(True, "[2, 3]")])

    outcome = CodeIterationLoop(session, sandbox.run).iterate("primes")

    assert [s.verdict for s in outcome.history] == [Verdict.INCORRECT, Verdict.SUCCESS]
    assert "but the result is incorrect:\n[4]" in client.calls_for(CODE_PYTHON_PROMPT)[1]


def test_keep_iterating_never_reports_success(client, session) -> None:
    client.queue(CODE_PYTHON_PROMPT, *([PRIMES] * 3))
    client.queue(IS_TERMINATION_PROMPT, ACCEPT, ACCEPT, ACCEPT)
    sandbox = FakeSandbox([ExecResult(True, "[2, 3]")] * 3)

    outcome = CodeIterationLoop(session, sandbox.run, max_iter=3, stop_on_accept=False).iterate("primes")

    assert outcome.iterations == 3
    assert outcome.success is False
    assert outcome.history[-1].verdict is Verdict.SUCCESS


def test_reply_without_code_is_a_failure(client, session) -> None:
    client.queue(CODE_PYTHON_PROMPT, "I cannot help with that.")
    sandbox = FakeSandbox()

    outcome = CodeIterationLoop(session, sandbox.run, max_iter=1).iterate("primes")

    assert sandbox.codes == []
    assert outcome.history[0].verdict is Verdict.FAILED
    assert outcome.result == ITERATE_CODING_INVALID_TEMPLATE


def test_history_is_summarized(client, session) -> None:
    client.queue(CODE_PYTHON_PROMPT, PRIMES, PRIMES, PRIMES)
    client.queue(SUMMARIZE_CHAT_HISTORY_PROMPT, "both attempts hit NameError")

    CodeIterationLoop(session, FakeSandbox().run, max_iter=3, summarize_every=2).iterate("primes")

    prompts = client.calls_for(CODE_PYTHON_PROMPT)
    assert prompts[1].startswith("Failed to execute the code:")
    assert prompts[2].startswith("Reminder: you are working towards solving the following task: primes.")
    assert "both attempts hit NameError" in prompts[2]
    assert len(client.calls_for(SUMMARIZE_CHAT_HISTORY_PROMPT)) == 1


def test_run_isolated_times_out() -> None:
    release = threading.Event()
    workers = []

    def hang(code: str) -> ExecResult:
        workers.append(threading.current_thread())
        release.wait(5)
        return ExecResult(True, "late")

    try:
        res = run_isolated(hang, "while True: pass", timeout_s=0.05)
    finally:
        release.set()

    assert res.ok is False
    assert res.output.startswith("Code execution error message: no result after")
    assert workers[0].daemon is True


def test_run_isolated_reports_exceptions() -> None:
    def boom(code: str) -> ExecResult:
        raise RuntimeError("sandbox unavailable")

    res = run_isolated(boom, "print(1)", timeout_s=1)

    assert res == ExecResult(False, "Code execution error message: sandbox unavailable")
