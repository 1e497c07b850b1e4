# -*- coding: utf-8 -*-

from __future__ import annotations

import logging
from typing import Optional, Tuple

from .model_client import ChatSession
from .parse import JudgmentResult, parse_next_move_and_key_points
from .prompts import (
    IS_TERMINATION_PROMPT,
    NEXT_MOVE_PROMPT,
    format_grounding_check,
    format_termination_check,
    grounding_check_prompt,
)

LOGGER = logging.getLogger(__name__)


def judge_next_move(
    session: ChatSession,
    current_result: str,
    instruction: str,
    next_marker: Optional[str] = None,
    depth_aware: bool = False,
) -> JudgmentResult:
    """
    Ask the gatekeeper whether `current_result` satisfies `instruction`.
    A reply that cannot be read degrades to terminate=False with no key points.
    """
    system_prompt = NEXT_MOVE_PROMPT if next_marker else IS_TERMINATION_PROMPT
    user_prompt = format_termination_check(instruction, current_result)
    reply = session.complete_text(system_prompt, user_prompt, scope="judge")
    judgment = parse_next_move_and_key_points(reply, next_marker=next_marker, depth_aware=depth_aware)
    session.trace.event(
        {
            "type": "judge",
            "terminate": judgment.terminate,
            "next_handler": judgment.next_handler,
            "key_points": judgment.key_points,
        }
    )
    LOGGER.info("termination_check", extra={"terminate": judgment.terminate, "key_points": len(judgment.key_points)})
    return judgment


def is_termination(session: ChatSession, current_result: str, instruction: str) -> Tuple[bool, str]:
    judgment = judge_next_move(session, current_result, instruction)
    return judgment.terminate, judgment.digest


def grounding_check(session: ChatSession, question: str, answer: str, today: Optional[str] = None) -> JudgmentResult:
    """`terminate` on the result means the pair needs grounding data (grounded_or_not == "YES")."""
    reply = session.complete_text(
        grounding_check_prompt(today),
        format_grounding_check(question, answer),
        scope="grounding",
    )
    return parse_next_move_and_key_points(reply, verdict_key="grounded_or_not", verdict_value="YES")
