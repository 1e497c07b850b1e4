# -*- coding: utf-8 -*-

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from .coding import CodeIterationLoop
from .config import MAX_ITER, MAX_REPLAN_DEPTH
from .dispatch import CollaboratorFailedError, Continue, Done, ToolDispatcher, ToolError
from .model_client import ChatSession, ModelConfigError, ModelRequestError, OpenAICompatClient
from .parse import TextContent, parse_planning_steps
from .prompts import (
    FURTHER_TASK_BY_TOOLCALL_PROMPT,
    NEXT_STEP_BY_TOOLCALL_PROMPT,
    NEXT_STEP_PLANNING_PROMPT,
    format_step_handoff,
)
from .tools import PythonSandbox, ToolBelt
from .trace import TraceLog
from .verifier import grounding_check

LOGGER = logging.getLogger(__name__)

STEP_ERROR_POLICIES = ("abort", "skip")


class NoTaskError(ValueError):
    """The stepper was handed an empty step list."""


@dataclass(frozen=True)
class AgentIdentity:
    name: str
    system_prompt: str
    llm_config: Optional[dict] = None
    tool_metadata: str = ""
    description: str = ""

    @classmethod
    def simple(cls, name: str, system_prompt: str) -> "AgentIdentity":
        return cls(name=name, system_prompt=system_prompt)


@dataclass
class StepperResult:
    ok: bool
    result: str
    reason: Optional[str] = None
    steps_completed: int = 0
    failed_steps: List[str] = field(default_factory=list)


class Agent:
    """
    Plans an instruction into steps and works through them one tool call at a
    time. All requests share one ChatSession. With `route_intrinsic` each step
    goes through the routing prompt, which also offers use_intrinsic_knowledge.
    """

    def __init__(
        self,
        identity: AgentIdentity,
        session: ChatSession,
        tools: ToolBelt,
        on_step_error: str = "abort",
        max_replan_depth: int = MAX_REPLAN_DEPTH,
        max_iter: int = MAX_ITER,
        stop_on_accept: bool = True,
        summarize_every: int = 0,
        route_intrinsic: bool = False,
    ):
        if on_step_error not in STEP_ERROR_POLICIES:
            raise ValueError(f"on_step_error must be one of {STEP_ERROR_POLICIES}, got {on_step_error!r}")
        self.identity = identity
        self.session = session
        self.tools = tools
        self.on_step_error = on_step_error
        self.max_replan_depth = max_replan_depth
        self.route_intrinsic = route_intrinsic
        self.coder = CodeIterationLoop(
            session,
            tools.run_python,
            max_iter=max_iter,
            stop_on_accept=stop_on_accept,
            summarize_every=summarize_every,
        )
        self.dispatcher = ToolDispatcher(tools, run_code=self.code_with_python, replan=self._replan)

    def code_with_python(self, key_points: str) -> str:
        return self.coder.iterate(key_points).summary()

    def plan(self, instruction: str) -> List[str]:
        reply = self.session.complete_text(NEXT_STEP_PLANNING_PROMPT, instruction, scope="planner")
        steps = parse_planning_steps(reply)
        self.session.trace.event({"type": "plan", "instruction": instruction, "steps": steps})
        LOGGER.info("plan_ready", extra={"steps": len(steps)})
        # Stack order: popping from the end replays the planned order.
        steps.reverse()
        return steps

    def _answer_directly(self, task: str) -> str:
        return self.session.complete_text(self.identity.system_prompt, task, scope="intrinsic")

    def _replan(self, task: str, depth: int) -> str:
        if depth > self.max_replan_depth:
            return self._answer_directly(task)
        steps = self.plan(task)
        if not steps:
            return self._answer_directly(task)
        outcome = self.stepper(steps, depth=depth)
        if not outcome.ok:
            raise CollaboratorFailedError("use_intrinsic_knowledge", outcome.reason or "sub-task failed")
        return outcome.result

    def _resolve(self, system_prompt: str, step_input: str, depth: int, scope: str):
        msg = self.session.complete(system_prompt, step_input, scope=scope)
        if isinstance(msg.content, TextContent):
            return Continue(msg.content.text)
        invocation = msg.content
        resolution = self.dispatcher.dispatch(invocation, depth=depth)
        self.session.trace.event(
            {
                "type": "tool",
                "tool": invocation.name,
                "arguments": invocation.arguments,
                "depth": depth,
                "done": isinstance(resolution, Done),
                "result": resolution.result,
            }
        )
        return resolution

    def further_task_by_toolcall(self, step_input: str, depth: int = 0):
        return self._resolve(FURTHER_TASK_BY_TOOLCALL_PROMPT, step_input, depth, "step")

    def next_step_by_toolcall(self, step_input: str, depth: int = 0):
        """Routing variant: the model may also hand the task back to itself via use_intrinsic_knowledge."""
        return self._resolve(NEXT_STEP_BY_TOOLCALL_PROMPT, step_input, depth, "route")

    def stepper(self, steps: List[str], depth: int = 0) -> StepperResult:
        stack = list(steps)
        if not stack:
            raise NoTaskError("no task to handle")

        resolve = self.next_step_by_toolcall if self.route_intrinsic else self.further_task_by_toolcall
        current = stack.pop()
        result = ""
        completed = 0
        failed: List[str] = []
        while True:
            self.session.trace.event({"type": "step", "depth": depth, "input": current})
            try:
                resolution = resolve(current, depth=depth)
            except (ToolError, ModelRequestError, ModelConfigError) as exc:
                LOGGER.warning("step_failed", extra={"depth": depth, "error": str(exc)})
                failed.append(str(exc))
                if self.on_step_error == "abort" or isinstance(exc, ModelConfigError):
                    return StepperResult(False, result, reason=str(exc), steps_completed=completed, failed_steps=failed)
                completed += 1
                if not stack:
                    # The last step failed: report the last real output, not the placeholder.
                    return StepperResult(False, result, reason=str(exc), steps_completed=completed, failed_steps=failed)
                current = format_step_handoff(f"step failed: {exc}", stack.pop())
                continue

            result = resolution.result
            completed += 1
            if isinstance(resolution, Done):
                return StepperResult(True, result, steps_completed=completed, failed_steps=failed)
            if not stack:
                break
            current = format_step_handoff(result, stack.pop())
        return StepperResult(True, result, steps_completed=completed, failed_steps=failed)

    def run(self, instruction: str) -> StepperResult:
        steps = self.plan(instruction)
        if not steps:
            # Degenerate plan: hand the instruction through as the only step.
            steps = [instruction]
        return self.stepper(steps)


@dataclass
class RunOutcome:
    ok: bool
    result: str
    reason: Optional[str] = None
    grounding_points: List[str] = field(default_factory=list)


def run_agent(
    task: str,
    model_base_url: str,
    model_name: str | None = None,
    bing_api_key: str | None = None,
    temperature: float = 0.2,
    work_dir: str | None = None,
    on_step_error: str = "abort",
    stop_on_accept: bool = True,
    summarize_every: int = 0,
    check_grounding: bool = False,
    route_intrinsic: bool = False,
    sandbox_network: bool = False,
    session: ChatSession | None = None,
    sandbox=None,
) -> RunOutcome:
    """
    One complete run. Failures end this run with a reason and whatever was
    computed so far; they never terminate the process.
    """
    trace = TraceLog(Path(work_dir) / "trace.jsonl") if work_dir else TraceLog()
    trace.event({"type": "task", "task": task})

    owned_sandbox = None
    try:
        if session is None:
            session = ChatSession(
                OpenAICompatClient(base_url=model_base_url, model=model_name),
                temperature=temperature,
                trace=trace,
            )
        if sandbox is None:
            owned_sandbox = sandbox = PythonSandbox.start(network_enabled=sandbox_network)

        identity = AgentIdentity.simple("user_proxy", "you're user_proxy")
        agent = Agent(
            identity,
            session,
            ToolBelt(sandbox=sandbox, bing_api_key=bing_api_key),
            on_step_error=on_step_error,
            stop_on_accept=stop_on_accept,
            summarize_every=summarize_every,
            route_intrinsic=route_intrinsic,
        )
        outcome = agent.run(task)
        run_outcome = RunOutcome(outcome.ok, outcome.result, reason=outcome.reason)
        if outcome.ok and check_grounding:
            judgment = grounding_check(session, task, outcome.result)
            if judgment.terminate:
                run_outcome.grounding_points = judgment.key_points
    except (ModelConfigError, ModelRequestError, RuntimeError) as exc:
        LOGGER.error("run_failed", extra={"error": str(exc)})
        run_outcome = RunOutcome(False, "", reason=str(exc))
    finally:
        if owned_sandbox is not None:
            owned_sandbox.close()

    trace.event({"type": "final", "ok": run_outcome.ok, "reason": run_outcome.reason, "result": run_outcome.result})
    return run_outcome
