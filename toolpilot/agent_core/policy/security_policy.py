from __future__ import annotations

"""Static security classification for tools.

``SecurityPolicy`` is the authority the agent loop consults before dispatching
a tool call. It answers two questions per tool name:

- how dangerous is it (``danger_level``), and
- must a human confirm it first (``requires_confirmation``).

The table is fixed when the policy is constructed and is exposed only through
read-only views, so nothing produced at runtime (in particular, model output)
can relax a confirmation requirement. Concurrent reads need no locking.
"""

from types import MappingProxyType
from typing import Iterable, List, Mapping, Optional

from ..schemas.domain import DangerLevel, SecurityRule
from .models import DEFAULT_SECURITY_RULES


class SecurityPolicy:
    """Immutable lookup of ``SecurityRule`` by tool name.

    Unlisted tools are classified ``none`` and never require confirmation.
    """

    def __init__(self, rules: Iterable[SecurityRule]) -> None:
        table = {}
        for rule in rules:
            if rule.tool_name in table:
                raise ValueError(f"duplicate security rule for tool: {rule.tool_name}")
            table[rule.tool_name] = rule
        self._rules: Mapping[str, SecurityRule] = MappingProxyType(table)

    def rule(self, tool_name: str) -> Optional[SecurityRule]:
        return self._rules.get(tool_name)

    def rules(self) -> List[SecurityRule]:
        return list(self._rules.values())

    def danger_level(self, tool_name: str) -> DangerLevel:
        """Return the authored danger level, or ``none`` for unlisted tools."""
        rule = self._rules.get(tool_name)
        return rule.danger_level if rule is not None else DangerLevel.none

    def requires_confirmation(self, tool_name: str) -> bool:
        """Return the authored confirmation flag, or ``False`` for unlisted tools."""
        rule = self._rules.get(tool_name)
        return rule.requires_confirmation if rule is not None else False

    def security_warning(self, tool_name: str) -> Optional[str]:
        """
        Human-readable warning shown alongside a confirmation request.

        Returns:
            The warning text for gated tools, ``None`` otherwise.
        """
        rule = self._rules.get(tool_name)
        if rule is None or not rule.requires_confirmation:
            return None
        return f"{rule.description} - This action requires confirmation before proceeding."


def default_security_policy() -> SecurityPolicy:
    """Build a policy from the built-in rule table."""
    return SecurityPolicy(DEFAULT_SECURITY_RULES)
