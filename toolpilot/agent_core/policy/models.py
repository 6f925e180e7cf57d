from __future__ import annotations

from typing import Tuple

from ..schemas.domain import DangerLevel, SecurityRule

_DANGER_ORDER = {
    DangerLevel.none: 0,
    DangerLevel.low: 1,
    DangerLevel.medium: 2,
    DangerLevel.high: 3,
    DangerLevel.critical: 4,
}


def is_at_least(a: DangerLevel, b: DangerLevel) -> bool:
    """Check if danger level 'a' is greater than or equal to 'b'."""
    return _DANGER_ORDER[a] >= _DANGER_ORDER[b]


DEFAULT_SECURITY_RULES: Tuple[SecurityRule, ...] = (
    # Critical
    SecurityRule(
        tool_name="delete_file",
        danger_level=DangerLevel.critical,
        description="Delete files or directories",
        requires_confirmation=True,
    ),
    SecurityRule(
        tool_name="move_file",
        danger_level=DangerLevel.critical,
        description="Move or rename files",
        requires_confirmation=True,
    ),
    # High
    SecurityRule(
        tool_name="browser_navigate",
        danger_level=DangerLevel.high,
        description="Navigate to a URL",
        requires_confirmation=True,
    ),
    # Medium
    SecurityRule(
        tool_name="write_file",
        danger_level=DangerLevel.medium,
        description="Write content to a file",
        requires_confirmation=True,
    ),
    SecurityRule(
        tool_name="browser_fill",
        danger_level=DangerLevel.medium,
        description="Fill form inputs",
        requires_confirmation=True,
    ),
    SecurityRule(
        tool_name="browser_click",
        danger_level=DangerLevel.medium,
        description="Click elements in the page",
        requires_confirmation=True,
    ),
    SecurityRule(
        tool_name="create_spreadsheet",
        danger_level=DangerLevel.medium,
        description="Create a spreadsheet file",
        requires_confirmation=True,
    ),
    SecurityRule(
        tool_name="create_document",
        danger_level=DangerLevel.medium,
        description="Create a Word document",
        requires_confirmation=True,
    ),
    SecurityRule(
        tool_name="create_presentation",
        danger_level=DangerLevel.medium,
        description="Create a PowerPoint presentation",
        requires_confirmation=True,
    ),
    SecurityRule(
        tool_name="create_csv",
        danger_level=DangerLevel.medium,
        description="Create a CSV file",
        requires_confirmation=True,
    ),
    # Low
    SecurityRule(
        tool_name="web_search",
        danger_level=DangerLevel.low,
        description="Search the web for information",
        requires_confirmation=False,
    ),
    SecurityRule(
        tool_name="fetch_web_page",
        danger_level=DangerLevel.low,
        description="Fetch content from a web page",
        requires_confirmation=False,
    ),
)
