"""Security policy subsystem.

The policy layer classifies every tool by danger level and decides whether a
call to it must be confirmed by a human before it runs. It is intentionally
separate from prompting so that the rules cannot be influenced by what the
model writes.

Components
----------

- ``SecurityRule``: one row of the table (tool name, danger level,
  description, confirmation flag).
- ``SecurityPolicy``: an immutable table of rules with ``danger_level``,
  ``requires_confirmation`` and ``security_warning`` lookups.
- ``DEFAULT_SECURITY_RULES`` / ``default_security_policy``: the built-in
  table covering the standard file, browser and document tools.
"""

from ..schemas.domain import DangerLevel, SecurityRule
from .models import DEFAULT_SECURITY_RULES, is_at_least
from .security_policy import SecurityPolicy, default_security_policy

__all__ = [
    "DangerLevel",
    "SecurityRule",
    "SecurityPolicy",
    "DEFAULT_SECURITY_RULES",
    "default_security_policy",
    "is_at_least",
]
