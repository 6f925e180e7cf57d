"""Extraction of tool invocations from free-form model output.

Two calling conventions are recognised and may be mixed in one reply:

Inline directive::

    [TOOL_CALL]read_file: {"path": "notes.txt"}[/TOOL_CALL]

Fenced JSON block (``json`` tag or untagged)::

    ```json
    [{"name": "read_file", "parameters": {"path": "notes.txt"}}]
    ```

The scanner walks the text looking for the opening marker of either form and
parses the body with a real JSON decoder, so nested objects are fine. A
malformed directive or block is a ``ToolCallSyntaxError`` that is logged and
skipped; scanning resumes after it. Inline directives are returned first, then
fenced blocks, each in text order. Only names in ``known_names`` survive and
every request gets a fresh id.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Container, Dict, Iterator, List, Tuple

from ..errors import ToolCallSyntaxError
from ..schemas.domain import ToolInvocationRequest

logger = logging.getLogger(__name__)

INLINE_OPEN = "[TOOL_CALL]"
INLINE_CLOSE = "[/TOOL_CALL]"
FENCE = "```"

_NAME = re.compile(r"\s*(\w+)\s*:\s*")
_WS = re.compile(r"\s*")
_DECODER = json.JSONDecoder()
_FENCE_TAGS = ("json", "")


def _parse_inline(text: str, start: int) -> Tuple[str, Dict[str, Any], int]:
    """Parse ``name: {json}[/TOOL_CALL]`` beginning at ``start``; return name, params, end offset."""
    m = _NAME.match(text, start)
    if m is None:
        raise ToolCallSyntaxError("expected '<tool name>:'", start)
    try:
        params, end = _DECODER.raw_decode(text, m.end())
    except json.JSONDecodeError as e:
        raise ToolCallSyntaxError(f"invalid JSON parameters: {e.msg}", m.end()) from e
    if not isinstance(params, dict):
        raise ToolCallSyntaxError("parameters must be a JSON object", m.end())
    end = _WS.match(text, end).end()
    if not text.startswith(INLINE_CLOSE, end):
        raise ToolCallSyntaxError(f"expected {INLINE_CLOSE}", end)
    return m.group(1), params, end + len(INLINE_CLOSE)


def _iter_inline(text: str) -> Iterator[Tuple[str, Dict[str, Any]]]:
    pos = 0
    while True:
        i = text.find(INLINE_OPEN, pos)
        if i < 0:
            return
        body = i + len(INLINE_OPEN)
        try:
            name, params, pos = _parse_inline(text, body)
        except ToolCallSyntaxError as e:
            logger.debug(f"Skipping malformed tool call directive: {e}")
            pos = body
            continue
        yield name, params


def _closing_fence(text: str, start: int) -> int:
    """Offset of the next line consisting of a bare fence after ``start``, or -1."""
    j = start
    while True:
        j = text.find("\n" + FENCE, j)
        if j < 0:
            return -1
        end = text.find("\n", j + 1 + len(FENCE))
        if end < 0:
            end = len(text)
        if not text[j + 1 + len(FENCE):end].strip():
            return j + 1
        j += 1


def _iter_fenced_bodies(text: str) -> Iterator[Tuple[int, str]]:
    pos = 0
    while True:
        i = text.find(FENCE, pos)
        if i < 0:
            return
        pos = i + len(FENCE)
        # an opener starts a line and its info string has no backticks
        if i > 0 and text[i - 1] != "\n":
            continue
        nl = text.find("\n", pos)
        if nl < 0:
            return
        tag = text[pos:nl].strip().lower()
        if "`" in tag:
            continue
        close = _closing_fence(text, nl)
        if close < 0:
            return
        pos = close + len(FENCE)
        if tag in _FENCE_TAGS:
            yield nl + 1, text[nl + 1:close]


def _parse_block(body: str, offset: int) -> List[Tuple[str, Dict[str, Any]]]:
    try:
        parsed = json.loads(body)
    except json.JSONDecodeError as e:
        raise ToolCallSyntaxError(f"invalid JSON in fenced block: {e.msg}", offset + e.pos) from e
    if not isinstance(parsed, list):
        raise ToolCallSyntaxError("fenced block is not a JSON array", offset)

    calls: List[Tuple[str, Dict[str, Any]]] = []
    for item in parsed:
        if not isinstance(item, dict) or not isinstance(item.get("name"), str):
            logger.debug(f"Skipping fenced entry without a name: {item!r}")
            continue
        params = item.get("parameters")
        if params is None:
            params = {}
        if not isinstance(params, dict):
            logger.debug(f"Skipping fenced entry '{item['name']}' with non-object parameters")
            continue
        calls.append((item["name"], params))
    return calls


def _iter_fenced(text: str) -> Iterator[Tuple[str, Dict[str, Any]]]:
    for offset, body in _iter_fenced_bodies(text):
        try:
            calls = _parse_block(body, offset)
        except ToolCallSyntaxError as e:
            logger.debug(f"Skipping fenced block: {e}")
            continue
        yield from calls


def extract_tool_calls(text: str, known_names: Container[str]) -> List[ToolInvocationRequest]:
    """
    Extract tool invocation requests from model output.

    Args:
        text: The raw assistant text.
        known_names: Names of registered tools; anything else is dropped.

    Returns:
        Requests in extraction order, each with a freshly generated id.
    """
    requests: List[ToolInvocationRequest] = []
    for source in (_iter_inline(text), _iter_fenced(text)):
        for name, params in source:
            if name not in known_names:
                logger.debug(f"Ignoring call to unregistered tool '{name}'")
                continue
            requests.append(ToolInvocationRequest(name=name, parameters=params))
    return requests
