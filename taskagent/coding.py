# -*- coding: utf-8 -*-

from __future__ import annotations

import enum
import logging
import threading
from dataclasses import dataclass, field
from typing import List

from .config import MAX_CODE_SECONDS, MAX_ITER
from .model_client import ChatSession
from .parse import extract_code
from .prompts import (
    CODE_PYTHON_PROMPT,
    ITERATE_CODING_INVALID_TEMPLATE,
    SUMMARIZE_CHAT_HISTORY_PROMPT,
    format_coding_fail,
    format_coding_history,
    format_coding_incorrect,
    format_coding_start,
)
from .tools import ExecResult
from .verifier import is_termination

LOGGER = logging.getLogger(__name__)


class Verdict(enum.Enum):
    SUCCESS = "success"
    INCORRECT = "incorrect"
    FAILED = "failed"


@dataclass
class CodeIterationState:
    iteration: int
    code: str = ""
    execution_result: str = ""
    verdict: Verdict = Verdict.FAILED

    def feedback(self) -> str:
        if self.verdict is Verdict.FAILED:
            return format_coding_fail(self.code, self.execution_result)
        return format_coding_incorrect(self.code, self.execution_result)


@dataclass
class CodeOutcome:
    success: bool
    code: str
    result: str
    iterations: int
    history: List[CodeIterationState] = field(default_factory=list)

    def summary(self) -> str:
        if self.success:
            return self.result
        return (
            f"Code was not accepted after {self.iterations} iteration(s). "
            f"Last result:\n{self.result}"
        )


def run_isolated(sandbox_run, code: str, timeout_s: float) -> ExecResult:
    """
    Execute on a daemon worker thread so a runaway program cannot block the
    caller past `timeout_s`. A timed-out worker is abandoned, not killed; the
    coreutils `timeout` inside the container is what stops the program, and
    the daemon flag keeps a hung docker exec from stalling interpreter exit.
    """
    outcome: List[ExecResult] = []

    def _work() -> None:
        try:
            outcome.append(sandbox_run(code))
        except Exception as exc:  # collaborator failure surfaces as an error string
            outcome.append(ExecResult(False, f"Code execution error message: {exc}"))

    worker = threading.Thread(target=_work, name="sandbox-run", daemon=True)
    worker.start()
    worker.join(timeout_s)
    if worker.is_alive() or not outcome:
        return ExecResult(False, f"Code execution error message: no result after {timeout_s:.0f}s")
    return outcome[0]


class CodeIterationLoop:
    """
    Generate, run and judge code up to `max_iter` times. Stops at the first
    accepted result unless `stop_on_accept` is off (`--keep-iterating`).
    """

    def __init__(
        self,
        session: ChatSession,
        sandbox_run,
        max_iter: int = MAX_ITER,
        stop_on_accept: bool = True,
        summarize_every: int = 0,
        exec_timeout_s: float = MAX_CODE_SECONDS + 10,
    ):
        self.session = session
        self.sandbox_run = sandbox_run
        self.max_iter = max(1, min(int(max_iter), MAX_ITER))
        self.stop_on_accept = stop_on_accept
        self.summarize_every = max(0, int(summarize_every))
        self.exec_timeout_s = exec_timeout_s

    def _summarize(self, history: List[CodeIterationState]) -> str:
        transcript = "\n\n".join(state.feedback() for state in history)
        return self.session.complete_text(SUMMARIZE_CHAT_HISTORY_PROMPT, transcript, scope="code_summary")

    def iterate(self, task_description: str) -> CodeOutcome:
        start_prompt = format_coding_start(task_description)
        user_prompt = start_prompt
        history: List[CodeIterationState] = []
        state = CodeIterationState(iteration=0)
        accepted = False

        for n in range(1, self.max_iter + 1):
            reply = self.session.complete_text(CODE_PYTHON_PROMPT, user_prompt, scope="coder")
            state = CodeIterationState(iteration=n, code=extract_code(reply))

            if not state.code:
                state.execution_result = ITERATE_CODING_INVALID_TEMPLATE
                state.verdict = Verdict.FAILED
            else:
                res = run_isolated(self.sandbox_run, state.code, self.exec_timeout_s)
                state.execution_result = res.output
                if res.ok:
                    terminate, key_points = is_termination(self.session, res.output, start_prompt)
                    state.verdict = Verdict.SUCCESS if terminate else Verdict.INCORRECT
                    if key_points:
                        LOGGER.debug("code_key_points", extra={"iteration": n, "key_points": key_points})
                else:
                    state.verdict = Verdict.FAILED

            history.append(state)
            self.session.trace.event(
                {
                    "type": "code_iteration",
                    "iteration": n,
                    "verdict": state.verdict.value,
                    "code": state.code,
                    "output": state.execution_result,
                }
            )
            LOGGER.info("code_iteration", extra={"iteration": n, "verdict": state.verdict.value})

            if state.verdict is Verdict.SUCCESS:
                accepted = True
                if self.stop_on_accept:
                    break
            if n == self.max_iter:
                break

            if self.summarize_every and n % self.summarize_every == 0:
                user_prompt = format_coding_history(task_description, self._summarize(history))
            else:
                user_prompt = state.feedback()

        return CodeOutcome(
            success=accepted and self.stop_on_accept,
            code=state.code,
            result=state.execution_result,
            iterations=state.iteration,
            history=history,
        )
