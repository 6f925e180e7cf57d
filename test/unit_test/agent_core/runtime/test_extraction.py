from __future__ import annotations

from toolpilot.agent_core.runtime import extract_tool_calls

KNOWN = {"echo", "read_file", "write_file"}


def test_inline_directive() -> None:
    calls = extract_tool_calls('[TOOL_CALL]echo: {"text": "hi"}[/TOOL_CALL]', KNOWN)

    assert len(calls) == 1
    assert calls[0].name == "echo"
    assert calls[0].parameters == {"text": "hi"}
    assert calls[0].id


def test_inline_directive_allows_nested_objects_and_whitespace() -> None:
    text = 'Let me write it.\n[TOOL_CALL] write_file : {"path": "a.json", "meta": {"x": {"y": 1}}} [/TOOL_CALL]'

    calls = extract_tool_calls(text, KNOWN)

    assert [(c.name, c.parameters) for c in calls] == [
        ("write_file", {"path": "a.json", "meta": {"x": {"y": 1}}}),
    ]


def test_no_tool_call_syntax() -> None:
    assert extract_tool_calls("Here is your answer: 42.", KNOWN) == []
    assert extract_tool_calls("", KNOWN) == []


def test_unknown_names_are_filtered() -> None:
    text = '[TOOL_CALL]rm_rf: {"path": "/"}[/TOOL_CALL][TOOL_CALL]echo: {"text": "x"}[/TOOL_CALL]'

    calls = extract_tool_calls(text, KNOWN)

    assert [c.name for c in calls] == ["echo"]


def test_malformed_directive_is_skipped_without_aborting() -> None:
    text = (
        "[TOOL_CALL]echo: {not json}[/TOOL_CALL]\n"
        '[TOOL_CALL]echo: ["a list"][/TOOL_CALL]\n'
        '[TOOL_CALL]echo: {"text": "unterminated"}\n'
        '[TOOL_CALL]read_file: {"path": "ok.txt"}[/TOOL_CALL]'
    )

    calls = extract_tool_calls(text, KNOWN)

    assert [(c.name, c.parameters) for c in calls] == [("read_file", {"path": "ok.txt"})]


def test_fenced_json_block() -> None:
    text = (
        "I'll do two things.\n"
        "```json\n"
        '[{"name": "read_file", "parameters": {"path": "a.txt"}}, {"name": "echo"}]\n'
        "```\n"
    )

    calls = extract_tool_calls(text, KNOWN)

    assert [(c.name, c.parameters) for c in calls] == [("read_file", {"path": "a.txt"}), ("echo", {})]


def test_untagged_fence_is_accepted_other_languages_are_not() -> None:
    untagged = '```\n[{"name": "echo", "parameters": {"text": "a"}}]\n```'
    python = '```python\n[{"name": "echo", "parameters": {"text": "a"}}]\n```'

    assert [c.name for c in extract_tool_calls(untagged, KNOWN)] == ["echo"]
    assert extract_tool_calls(python, KNOWN) == []


def test_invalid_fenced_entries_are_skipped() -> None:
    text = (
        "```json\n"
        '{"name": "echo"}\n'
        "```\n"
        "```json\n"
        '[{"parameters": {}}, {"name": "echo", "parameters": "bad"}, {"name": "echo", "parameters": {"text": "ok"}}]\n'
        "```"
    )

    calls = extract_tool_calls(text, KNOWN)

    assert [(c.name, c.parameters) for c in calls] == [("echo", {"text": "ok"})]


def test_inline_directives_come_before_fenced_blocks() -> None:
    text = (
        '```json\n[{"name": "read_file", "parameters": {"path": "first-in-text"}}]\n```\n'
        '[TOOL_CALL]echo: {"text": "second-in-text"}[/TOOL_CALL]'
    )

    calls = extract_tool_calls(text, KNOWN)

    assert [c.name for c in calls] == ["echo", "read_file"]


def test_every_request_gets_a_fresh_id() -> None:
    text = '[TOOL_CALL]echo: {"text": "a"}[/TOOL_CALL][TOOL_CALL]echo: {"text": "a"}[/TOOL_CALL]'

    first = extract_tool_calls(text, KNOWN)
    second = extract_tool_calls(text, KNOWN)

    ids = {c.id for c in first + second}
    assert len(ids) == 4


def test_stray_backticks_in_prose_do_not_hide_a_fenced_block() -> None:
    block = '```json\n[{"name": "echo", "parameters": {"text": "a"}}]\n```'
    replies = [
        "Do not type ``` in prose.\n" + block,
        "Use ```x``` literally.\n" + block,
        "```x``` at the start of a line.\n" + block,
    ]

    for reply in replies:
        calls = extract_tool_calls(reply, KNOWN)
        assert [(c.name, c.parameters) for c in calls] == [("echo", {"text": "a"})], reply


def test_other_language_block_before_a_json_block_is_skipped_whole() -> None:
    text = (
        "```python\nprint('```')\n```\n"
        '```json\n[{"name": "echo", "parameters": {"text": "b"}}]\n```'
    )

    calls = extract_tool_calls(text, KNOWN)

    assert [(c.name, c.parameters) for c in calls] == [("echo", {"text": "b"})]
