# -*- coding: utf-8 -*-

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union

LOGGER = logging.getLogger(__name__)

TOOL_CALL_OPEN = "<tool_call>"
TOOL_CALL_CLOSE = "</tool_call>"


@dataclass(frozen=True)
class TextContent:
    text: str


@dataclass(frozen=True)
class ToolInvocation:
    name: str
    arguments: Dict[str, str] = field(default_factory=dict)

    def to_wire(self) -> str:
        body = json.dumps({"name": self.name, "arguments": dict(self.arguments)}, ensure_ascii=False)
        return f"{TOOL_CALL_OPEN}{body}{TOOL_CALL_CLOSE}"


ResponseContent = Union[TextContent, ToolInvocation]


@dataclass(frozen=True)
class JudgmentResult:
    terminate: bool = False
    next_handler: Optional[str] = None
    key_points: List[str] = field(default_factory=list)

    @property
    def digest(self) -> str:
        return ",".join(self.key_points)


def _tool_call_body(text: str) -> Optional[str]:
    stripped = text.strip()
    if not (stripped.startswith(TOOL_CALL_OPEN) and stripped.endswith(TOOL_CALL_CLOSE)):
        return None
    if len(stripped) < len(TOOL_CALL_OPEN) + len(TOOL_CALL_CLOSE):
        return None
    return stripped[len(TOOL_CALL_OPEN):len(stripped) - len(TOOL_CALL_CLOSE)].strip()


def classify_content(text: str) -> ResponseContent:
    """
    Tool call format:
    <tool_call>{"name": "search_with_bing", "arguments": {"query": "..."}}</tool_call>

    Anything that does not match exactly (delimiters, JSON, field types) is plain text.
    """
    if not isinstance(text, str):
        text = "" if text is None else str(text)
    plain = TextContent(text.strip())

    body = _tool_call_body(text)
    if body is None:
        return plain
    try:
        obj = json.loads(body)
    except ValueError:
        return plain
    if not isinstance(obj, dict) or set(obj) - {"name", "arguments"}:
        return plain

    name = obj.get("name")
    if not isinstance(name, str):
        return plain
    args = obj.get("arguments")
    if args is None:
        args = {}
    if not isinstance(args, dict):
        return plain
    if not all(isinstance(k, str) and isinstance(v, str) for k, v in args.items()):
        return plain
    return ToolInvocation(name=name, arguments=dict(args))


def _first_flat_object(text: str) -> str:
    # Single-level only: a nested "{" truncates the span at the first "}".
    m = re.search(r"\{[^}]*\}", text)
    return m.group(0) if m else ""


def _first_balanced_object(text: str) -> str:
    start = text.find("{")
    while start >= 0:
        depth = 0
        in_str = False
        esc = False
        for i in range(start, len(text)):
            ch = text[i]
            if in_str:
                if esc:
                    esc = False
                elif ch == "\\":
                    esc = True
                elif ch == "\"":
                    in_str = False
                continue
            if ch == "\"":
                in_str = True
            elif ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    return text[start:i + 1]
        start = text.find("{", start + 1)
    return ""


def _string_field(blob: str, key: str) -> Optional[str]:
    m = re.search(r'"' + re.escape(key) + r'"\s*:\s*"([^"]*)"', blob)
    return m.group(1) if m else None


def _key_points(blob: str) -> List[str]:
    m = re.search(r'"key_points"\s*:\s*\[(.*?)\]', blob, flags=re.S)
    if not m or not m.group(1).strip():
        return []
    points = []
    for part in m.group(1).split(","):
        part = part.strip().strip("\"'").strip()
        if part:
            points.append(part)
    return points


def parse_next_move_and_key_points(
    text: str,
    next_marker: Optional[str] = None,
    verdict_key: str = "continue_or_terminate",
    verdict_value: str = "TERMINATE",
    depth_aware: bool = False,
) -> JudgmentResult:
    """
    Tolerant extraction of a gatekeeper reply. Never raises: anything missing
    degrades to terminate=False, next_handler=None and no key points.
    """
    if not isinstance(text, str) or not text:
        return JudgmentResult()

    blob = _first_balanced_object(text) if depth_aware else _first_flat_object(text)
    verdict = _string_field(blob, verdict_key) if blob else None
    next_handler = None
    if next_marker:
        next_handler = _string_field(blob, next_marker) if blob else None

    return JudgmentResult(
        terminate=verdict == verdict_value,
        next_handler=next_handler,
        key_points=_key_points(blob) if blob else [],
    )


def parse_planning_steps(text: str) -> List[str]:
    if not isinstance(text, str):
        return []
    m = re.search(r'"steps_to_take"\s*:\s*(\[[^\]]*\])', text)
    if not m:
        LOGGER.warning("planning_steps_missing", extra={"reply_excerpt": text[:200]})
        return []
    try:
        steps = json.loads(m.group(1))
    except ValueError as exc:
        LOGGER.warning("planning_steps_invalid_json", extra={"error": str(exc), "slice": m.group(1)[:200]})
        return []
    if not isinstance(steps, list) or not all(isinstance(s, str) for s in steps):
        LOGGER.warning("planning_steps_not_strings", extra={"slice": m.group(1)[:200]})
        return []
    return steps


def extract_code(text: str) -> str:
    """
    Concatenate every ```python fenced block in source order. When the model
    forgets the language tag, the first bare fenced block is used instead.
    """
    if not isinstance(text, str):
        return ""
    blocks = [m.group(1).strip() for m in re.finditer(r"```python(.*?)```", text, flags=re.S | re.I)]
    blocks = [b for b in blocks if b]
    if blocks:
        return "\n".join(blocks)
    m = re.search(r"```[ \t]*\r?\n(.*?)```", text, flags=re.S)
    if m:
        return m.group(1).strip()
    return ""
