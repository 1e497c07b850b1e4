# -*- coding: utf-8 -*-

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional, Union

from .parse import ToolInvocation
from .tools import CollaboratorError, ToolBelt

LOGGER = logging.getLogger(__name__)

TOOL_ARGUMENTS = {
    "get_webpage_text": "url",
    "search_with_bing": "query",
    "code_with_python": "key_points",
    "use_intrinsic_knowledge": "task",
}


class ToolError(Exception):
    """A tool invocation produced no usable result."""


class UnrecognizedToolError(ToolError):
    def __init__(self, name: str):
        super().__init__(f"unrecognized tool: {name!r}")
        self.name = name


class MissingArgumentError(ToolError):
    def __init__(self, tool: str, field_name: str):
        super().__init__(f"tool {tool!r} is missing required argument {field_name!r}")
        self.tool = tool
        self.field_name = field_name


class CollaboratorFailedError(ToolError):
    def __init__(self, tool: str, reason: str):
        super().__init__(f"tool {tool!r} failed: {reason}")
        self.tool = tool
        self.reason = reason


@dataclass(frozen=True)
class Continue:
    """The step produced `result`; stepping goes on."""
    result: str


@dataclass(frozen=True)
class Done:
    """The run is complete with `result`."""
    result: str


Resolution = Union[Continue, Done]


class ToolDispatcher:
    """
    Switches on the invocation name. `run_code` and `replan` are supplied by
    the agent: the first runs the code iteration loop and returns its
    summary, the second plans and steps through a sub-task at `depth`.
    """

    def __init__(
        self,
        tools: ToolBelt,
        run_code: Callable[[str], str],
        replan: Optional[Callable[[str, int], str]] = None,
    ):
        self.tools = tools
        self.run_code = run_code
        self.replan = replan

    @staticmethod
    def _required(invocation: ToolInvocation) -> str:
        field_name = TOOL_ARGUMENTS[invocation.name]
        value = (invocation.arguments or {}).get(field_name)
        if value is None:
            raise MissingArgumentError(invocation.name, field_name)
        return value

    def dispatch(self, invocation: ToolInvocation, depth: int = 0) -> Resolution:
        name = invocation.name
        if name not in TOOL_ARGUMENTS:
            raise UnrecognizedToolError(name)
        if name == "use_intrinsic_knowledge" and self.replan is None:
            raise UnrecognizedToolError(name)
        value = self._required(invocation)
        LOGGER.info("tool_dispatch", extra={"tool": name, "depth": depth})

        if name == "get_webpage_text":
            try:
                return Continue(self.tools.fetch(value))
            except CollaboratorError as exc:
                raise CollaboratorFailedError(name, str(exc)) from exc

        if name == "search_with_bing":
            try:
                return Continue(self.tools.search(value))
            except CollaboratorError as exc:
                raise CollaboratorFailedError(name, str(exc)) from exc

        if name == "code_with_python":
            return Continue(self.run_code(value))

        return Done(self.replan(value, depth + 1))
