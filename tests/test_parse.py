from __future__ import annotations

from taskagent.parse import (
    TextContent,
    ToolInvocation,
    classify_content,
    extract_code,
    parse_next_move_and_key_points,
    parse_planning_steps,
)


def test_classify_tool_call_with_arguments() -> None:
    text = '  <tool_call>\n{"arguments": {"query": "current year"}, "name": "search_with_bing"}\n</tool_call>\n'

    content = classify_content(text)

    assert content == ToolInvocation(name="search_with_bing", arguments={"query": "current year"})


def test_classify_tool_call_without_arguments() -> None:
    content = classify_content('<tool_call>{"name": "unknown_tool"}</tool_call>')

    assert content == ToolInvocation(name="unknown_tool", arguments={})


def test_wire_shape_is_classified_back_exactly() -> None:
    invocation = ToolInvocation(name="code_with_python", arguments={"key_points": "print primes, 2-100"})

    assert classify_content(invocation.to_wire()) == invocation


def test_plain_text_is_trimmed_text() -> None:
    assert classify_content("  Steve Jobs died on October 5, 2011.\n") == TextContent(
        "Steve Jobs died on October 5, 2011."
    )


def test_malformed_tool_calls_fall_back_to_text() -> None:
    samples = [
        '<tool_call>{"name": "search_with_bing", "arguments": {"query": "x"}</tool_call>',
        'Sure! <tool_call>{"name": "search_with_bing", "arguments": {}}</tool_call>',
        '<tool_call>{"name": 3, "arguments": {}}</tool_call>',
        '<tool_call>{"name": "search_with_bing", "arguments": {"count": 3}}</tool_call>',
        '<tool_call>{"name": "search_with_bing", "arguments": ["x"]}</tool_call>',
        '<tool_call>["search_with_bing"]</tool_call>',
        '<tool_call>{"name": "a", "arguments": {}, "extra": "b"}</tool_call>',
        "<tool_call></tool_call>",
    ]
    for sample in samples:
        assert classify_content(sample) == TextContent(sample.strip())


def test_extractor_reads_terminate_and_key_points() -> None:
    reply = (
        "Here is my verdict:\n```json\n"
        '{\n  "continue_or_terminate": "TERMINATE",\n  "key_points": ["primes listed", "25 numbers"]\n}\n```'
    )

    judgment = parse_next_move_and_key_points(reply)

    assert judgment.terminate is True
    assert judgment.key_points == ["primes listed", "25 numbers"]
    assert judgment.next_handler is None
    assert judgment.digest == "primes listed,25 numbers"


def test_extractor_terminate_is_case_sensitive() -> None:
    judgment = parse_next_move_and_key_points('{"continue_or_terminate": "terminate"}')

    assert judgment.terminate is False


def test_extractor_missing_fields_degrade() -> None:
    for text in ["", "no json at all", '{"continue_or_terminate": "CONTINUE"}', "{ broken"]:
        judgment = parse_next_move_and_key_points(text, next_marker="next_task_handler")
        assert judgment.terminate is False
        assert judgment.key_points == []
        assert judgment.next_handler is None


def test_extractor_reads_next_handler() -> None:
    reply = '{"continue_or_terminate": "CONTINUE", "next_task_handler": "coder", "key_points": []}'

    judgment = parse_next_move_and_key_points(reply, next_marker="next_task_handler")

    assert judgment.next_handler == "coder"
    assert judgment.key_points == []


def test_extractor_flat_match_truncates_nested_objects() -> None:
    reply = '{"meta": {"a": 1}, "continue_or_terminate": "TERMINATE"}'

    assert parse_next_move_and_key_points(reply).terminate is False
    assert parse_next_move_and_key_points(reply, depth_aware=True).terminate is True


def test_extractor_is_pure() -> None:
    reply = '{"continue_or_terminate": "TERMINATE", "key_points": ["a", "b"]}'

    assert parse_next_move_and_key_points(reply) == parse_next_move_and_key_points(reply)


def test_extractor_custom_verdict_key() -> None:
    reply = '{"grounded_or_not": "YES", "key_points": ["today is 2026-10-17"]}'

    judgment = parse_next_move_and_key_points(reply, verdict_key="grounded_or_not", verdict_value="YES")

    assert judgment.terminate is True
    assert judgment.key_points == ["today is 2026-10-17"]


def test_planning_steps_extracted() -> None:
    reply = '```json\n{"my_thought_process": ["..."], "steps_to_take": ["a", "b", "c"]}\n```'

    assert parse_planning_steps(reply) == ["a", "b", "c"]


def test_planning_steps_missing_or_invalid(caplog) -> None:
    assert parse_planning_steps("I think we should just do it.") == []
    assert parse_planning_steps('"steps_to_take": [a, b]') == []
    assert parse_planning_steps('"steps_to_take": [1, 2]') == []
    assert any(r.getMessage().startswith("planning_steps") for r in caplog.records)


def test_extract_code_concatenates_python_blocks() -> None:
    reply = "```python\nx = 1\n```\nthen\n```python\nprint(x)\n```"

    assert extract_code(reply) == "x = 1\nprint(x)"


def test_extract_code_falls_back_to_bare_fence() -> None:
    assert extract_code("```\nprint('hi')\n```") == "print('hi')"
    assert extract_code("no code here") == ""
