import pytest
from pydantic import ValidationError

from toolpilot.core.config import DEFAULT_SYSTEM_PROMPT, Settings


def test_defaults(monkeypatch: pytest.MonkeyPatch):
    for name in ("AGENT__MAX_TURNS", "AGENT__UNCONFIRMED_GATE", "CONFIRMATION__TIMEOUT_SECONDS"):
        monkeypatch.delenv(name, raising=False)

    s = Settings(_env_file=None)

    assert s.agent.max_turns == 50
    assert s.agent.working_directory == "/workspace"
    assert s.agent.unconfirmed_gate == "allow"
    assert s.agent.system_prompt == DEFAULT_SYSTEM_PROMPT
    assert s.confirmation.timeout_seconds == 60.0
    assert s.confirmation.display_value_limit == 100


def test_nested_environment_overrides(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("AGENT__MAX_TURNS", "7")
    monkeypatch.setenv("AGENT__UNCONFIRMED_GATE", "deny")
    monkeypatch.setenv("CONFIRMATION__TIMEOUT_SECONDS", "2.5")
    monkeypatch.setenv("TOOLPILOT_LOG_LEVEL", "WARNING")

    s = Settings(_env_file=None)

    assert s.agent.max_turns == 7
    assert s.agent.unconfirmed_gate == "deny"
    assert s.confirmation.timeout_seconds == 2.5
    assert s.toolpilot_log_level == "WARNING"


@pytest.mark.parametrize(
    "name,value",
    [("AGENT__UNCONFIRMED_GATE", "maybe"), ("AGENT__MAX_TURNS", "0"), ("CONFIRMATION__TIMEOUT_SECONDS", "0")],
)
def test_invalid_values_are_rejected(monkeypatch: pytest.MonkeyPatch, name: str, value: str):
    monkeypatch.setenv(name, value)

    with pytest.raises(ValidationError):
        Settings(_env_file=None)
