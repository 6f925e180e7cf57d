from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional, Sequence

import pytest
from pydantic_ai.messages import ModelMessage, ModelResponse, TextPart
from pydantic_ai.models.function import AgentInfo, FunctionModel

from toolpilot.agent_core.approvals import ConfirmationChannel
from toolpilot.agent_core.errors import AgentBusyError, ModelCallFailure
from toolpilot.agent_core.factory import build_registry, create_agent_loop
from toolpilot.agent_core.policy import default_security_policy
from toolpilot.agent_core.runtime import AgentLoop, LoopDeps, PydanticAIModelClient
from toolpilot.agent_core.schemas.domain import (
    AgentEvent,
    AgentEventType,
    AgentState,
    ModelReply,
    ParameterSpec,
    ParameterType,
    Role,
    Turn,
)
from toolpilot.agent_core.tools import FunctionTool, ToolRegistry


class _ScriptedModel:
    """Replies with the scripted texts in order, repeating the last one."""

    def __init__(self, replies: Sequence[str]) -> None:
        self.replies = list(replies)
        self.calls: List[List[Turn]] = []
        self.models: List[Optional[str]] = []

    async def complete(self, turns: Sequence[Turn], *, model: Optional[str] = None) -> ModelReply:
        self.calls.append(list(turns))
        self.models.append(model)
        idx = min(len(self.calls) - 1, len(self.replies) - 1)
        return ModelReply(content=self.replies[idx])


class _FailingModel:
    async def complete(self, turns: Sequence[Turn], *, model: Optional[str] = None) -> ModelReply:
        raise TimeoutError("model timed out")


def _registry(calls: List[Dict[str, Any]]) -> ToolRegistry:
    async def _echo(params: Dict[str, Any]) -> str:
        calls.append({"tool": "echo", **params})
        return params["text"]

    async def _delete(params: Dict[str, Any]) -> str:
        calls.append({"tool": "delete_file", **params})
        return f"deleted {params['path']}"

    return build_registry(
        [
            FunctionTool(
                _echo,
                name="echo",
                description="Echo text",
                parameters=[ParameterSpec(name="text", type=ParameterType.string, required=True)],
            ),
            FunctionTool(
                _delete,
                name="delete_file",
                description="Delete a file",
                parameters=[ParameterSpec(name="path", type=ParameterType.string, required=True)],
            ),
        ]
    )


def _loop(model: Any, tools: ToolRegistry, **kwargs: Any) -> AgentLoop:
    handler = kwargs.pop("confirmation_handler", None)
    deps = LoopDeps(model_client=model, tools=tools, policy=default_security_policy(), confirmation_handler=handler)
    return AgentLoop(deps=deps, **kwargs)


def _record(loop: AgentLoop) -> List[AgentEvent]:
    events: List[AgentEvent] = []
    loop.on_event(events.append)
    return events


ECHO_CALL = '[TOOL_CALL]echo: {"text": "hi"}[/TOOL_CALL]'
DELETE_CALL = '[TOOL_CALL]delete_file: {"path": "notes.txt"}[/TOOL_CALL]'


@pytest.mark.asyncio
async def test_plain_text_reply_is_final_answer() -> None:
    model = _ScriptedModel(["The answer is 42."])
    loop = _loop(model, _registry([]), max_turns=5)
    events = _record(loop)

    result = await loop.run("What is the answer?")

    assert result == "The answer is 42."
    assert loop.state == AgentState.done
    assert loop.current_turn == 1
    assert len(model.calls) == 1
    types = [e.type for e in events]
    assert types[:2] == [AgentEventType.state_change, AgentEventType.message]
    assert AgentEventType.thought in types
    assert [e.state for e in events if e.type == AgentEventType.state_change] == [
        AgentState.thinking,
        AgentState.done,
    ]
    assert all(e.task_id == loop.task_id for e in events)


@pytest.mark.asyncio
async def test_conversation_shape_and_folded_results() -> None:
    calls: List[Dict[str, Any]] = []
    model = _ScriptedModel([ECHO_CALL, "done"])
    loop = _loop(model, _registry(calls), max_turns=5)

    result = await loop.run("say hi")

    assert result == "done"
    assert calls == [{"tool": "echo", "text": "hi"}]
    messages = loop.get_messages()
    assert [m.role for m in messages] == [Role.system, Role.user, Role.assistant, Role.user, Role.assistant]
    assert messages[1].text == "say hi"
    assert messages[3].text == "Tool echo result: hi"
    # The second model call sees the folded-back result.
    assert model.calls[1][-1].text == "Tool echo result: hi"


@pytest.mark.asyncio
async def test_tool_error_is_folded_back_not_raised() -> None:
    model = _ScriptedModel(['[TOOL_CALL]echo: {"text": 5}[/TOOL_CALL]', "gave up"])
    loop = _loop(model, _registry([]), max_turns=5)

    assert await loop.run("go") == "gave up"
    folded = loop.get_messages()[3].text
    assert folded.startswith("Tool echo error: Invalid parameters: ")


@pytest.mark.asyncio
async def test_dispatch_emits_tool_events_and_state_changes() -> None:
    model = _ScriptedModel([ECHO_CALL, "done"])
    loop = _loop(model, _registry([]), max_turns=5)
    events = _record(loop)

    await loop.run("say hi")

    types = [e.type for e in events]
    assert types.index(AgentEventType.tool_call) < types.index(AgentEventType.tool_result)
    call_event = next(e for e in events if e.type == AgentEventType.tool_call)
    result_event = next(e for e in events if e.type == AgentEventType.tool_result)
    assert call_event.tool_call.name == "echo"
    assert result_event.tool_result.output == "hi"
    assert [e.state for e in events if e.type == AgentEventType.state_change] == [
        AgentState.thinking,
        AgentState.acting,
        AgentState.thinking,
        AgentState.done,
    ]


@pytest.mark.asyncio
async def test_denied_gated_tool_is_never_dispatched() -> None:
    calls: List[Dict[str, Any]] = []
    asked: List[str] = []

    async def _deny(tool_name: str, params: Dict[str, Any]) -> bool:
        asked.append(tool_name)
        return False

    model = _ScriptedModel([DELETE_CALL, "ok, I won't delete it"])
    loop = _loop(model, _registry(calls), max_turns=5, confirmation_handler=_deny)
    events = _record(loop)

    result = await loop.run("delete notes.txt")

    assert result == "ok, I won't delete it"
    assert asked == ["delete_file"]
    assert calls == []
    assert loop.get_messages()[3].text == "Tool delete_file was denied by user"
    notices = [e.message for e in events if e.type == AgentEventType.message]
    assert "Waiting for confirmation to execute delete_file..." in notices
    denied = next(e for e in events if e.type == AgentEventType.tool_result)
    assert denied.tool_result.success is False
    assert denied.tool_result.error == "Confirmation denied by user"
    assert len(model.calls) == 2


@pytest.mark.asyncio
async def test_denial_moves_on_to_next_request() -> None:
    calls: List[Dict[str, Any]] = []

    async def _deny(tool_name: str, params: Dict[str, Any]) -> bool:
        return False

    model = _ScriptedModel([DELETE_CALL + "\n" + ECHO_CALL, "finished"])
    loop = _loop(model, _registry(calls), max_turns=5, confirmation_handler=_deny)

    assert await loop.run("clean up") == "finished"
    assert calls == [{"tool": "echo", "text": "hi"}]
    folded = [m.text for m in loop.get_messages() if m.role == Role.user][1:]
    assert folded == ["Tool delete_file was denied by user", "Tool echo result: hi"]


@pytest.mark.asyncio
async def test_approved_gated_tool_is_dispatched() -> None:
    calls: List[Dict[str, Any]] = []

    async def _approve(tool_name: str, params: Dict[str, Any]) -> bool:
        assert params == {"path": "notes.txt"}
        return True

    model = _ScriptedModel([DELETE_CALL, "deleted"])
    loop = _loop(model, _registry(calls), max_turns=5, confirmation_handler=_approve)

    assert await loop.run("delete notes.txt") == "deleted"
    assert calls == [{"tool": "delete_file", "path": "notes.txt"}]


@pytest.mark.asyncio
async def test_failing_handler_counts_as_denial() -> None:
    calls: List[Dict[str, Any]] = []

    async def _broken(tool_name: str, params: Dict[str, Any]) -> bool:
        raise RuntimeError("ui went away")

    model = _ScriptedModel([DELETE_CALL, "stopped"])
    loop = _loop(model, _registry(calls), max_turns=5, confirmation_handler=_broken)

    assert await loop.run("delete") == "stopped"
    assert calls == []


@pytest.mark.asyncio
async def test_ungated_tool_skips_handler() -> None:
    async def _never(tool_name: str, params: Dict[str, Any]) -> bool:
        raise AssertionError("echo is not gated")

    model = _ScriptedModel([ECHO_CALL, "done"])
    loop = _loop(model, _registry([]), max_turns=5, confirmation_handler=_never)

    assert await loop.run("hi") == "done"


@pytest.mark.asyncio
async def test_without_handler_gated_tools_run_by_default() -> None:
    calls: List[Dict[str, Any]] = []
    model = _ScriptedModel([DELETE_CALL, "deleted"])
    loop = _loop(model, _registry(calls), max_turns=5, unconfirmed_gate="allow")

    assert await loop.run("delete") == "deleted"
    assert calls == [{"tool": "delete_file", "path": "notes.txt"}]


@pytest.mark.asyncio
async def test_without_handler_deny_gate_refuses_gated_tools() -> None:
    calls: List[Dict[str, Any]] = []
    model = _ScriptedModel([DELETE_CALL, "cannot"])
    loop = _loop(model, _registry(calls), max_turns=5, unconfirmed_gate="deny")

    assert await loop.run("delete") == "cannot"
    assert calls == []
    assert loop.get_messages()[3].text == "Tool delete_file was denied by user"


@pytest.mark.asyncio
async def test_turn_budget_exhaustion_returns_empty_string() -> None:
    calls: List[Dict[str, Any]] = []
    model = _ScriptedModel([ECHO_CALL])
    loop = _loop(model, _registry(calls), max_turns=1)

    result = await loop.run("loop forever")

    assert result == ""
    assert loop.state == AgentState.done
    assert loop.current_turn == 1
    assert len(model.calls) == 1
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_turn_counter_never_exceeds_budget() -> None:
    model = _ScriptedModel([ECHO_CALL])
    loop = _loop(model, _registry([]), max_turns=3)
    turns: List[int] = []
    loop.on_event(lambda e: turns.append(loop.current_turn))

    assert await loop.run("loop") == ""
    assert len(model.calls) == 3
    assert max(turns) == 3
    assert turns == sorted(turns)


@pytest.mark.asyncio
async def test_model_failure_aborts_run() -> None:
    loop = _loop(_FailingModel(), _registry([]), max_turns=5)
    events = _record(loop)

    with pytest.raises(ModelCallFailure) as exc:
        await loop.run("hi")

    assert isinstance(exc.value.__cause__, TimeoutError)
    assert loop.state == AgentState.error
    errors = [e for e in events if e.type == AgentEventType.error]
    assert len(errors) == 1
    assert "model timed out" in errors[0].error
    assert [m.role for m in loop.get_messages()] == [Role.system, Role.user]
    assert loop.is_running is False


@pytest.mark.asyncio
async def test_concurrent_run_is_rejected() -> None:
    gate = asyncio.Event()

    class _SlowModel:
        async def complete(self, turns: Sequence[Turn], *, model: Optional[str] = None) -> ModelReply:
            await gate.wait()
            return ModelReply(content="slow answer")

    loop = _loop(_SlowModel(), _registry([]), max_turns=2)
    first = asyncio.create_task(loop.run("one"))
    await asyncio.sleep(0.01)

    with pytest.raises(AgentBusyError):
        await loop.run("two")

    gate.set()
    assert await first == "slow answer"


@pytest.mark.asyncio
async def test_cancel_ignores_in_flight_result() -> None:
    calls: List[Dict[str, Any]] = []
    gate = asyncio.Event()

    class _SlowModel:
        async def complete(self, turns: Sequence[Turn], *, model: Optional[str] = None) -> ModelReply:
            await gate.wait()
            return ModelReply(content=ECHO_CALL)

    loop = _loop(_SlowModel(), _registry(calls), max_turns=5)
    task = asyncio.create_task(loop.run("go"))
    await asyncio.sleep(0.01)

    loop.cancel()
    assert loop.state == AgentState.done
    gate.set()

    assert await task == ""
    assert calls == []
    assert loop.state == AgentState.done


@pytest.mark.asyncio
async def test_cancel_ignores_in_flight_model_failure() -> None:
    gate = asyncio.Event()

    class _SlowFailingModel:
        async def complete(self, turns: Sequence[Turn], *, model: Optional[str] = None) -> ModelReply:
            await gate.wait()
            raise RuntimeError("late failure")

    loop = _loop(_SlowFailingModel(), _registry([]), max_turns=5)
    events = _record(loop)
    task = asyncio.create_task(loop.run("go"))
    await asyncio.sleep(0.01)

    loop.cancel()
    gate.set()

    assert await task == ""
    assert loop.state == AgentState.done
    assert [e for e in events if e.type == AgentEventType.error] == []
    assert loop.is_running is False


@pytest.mark.asyncio
async def test_each_run_resets_conversation_and_task_id() -> None:
    model = _ScriptedModel(["first", "second"])
    loop = _loop(model, _registry([]), max_turns=5)

    await loop.run("one")
    first_id = loop.task_id
    await loop.run("two", model="openai:gpt-4o")

    assert loop.task_id != first_id
    assert [m.text for m in loop.get_messages()][1:] == ["two", "second"]
    assert model.models == [None, "openai:gpt-4o"]


@pytest.mark.asyncio
async def test_system_prompt_includes_skill_and_tool_catalogue() -> None:
    model = _ScriptedModel(["ok"])
    loop = _loop(model, _registry([]), max_turns=1, system_prompt="You are a test agent.", skill_prompt="SKILL: be brief")

    await loop.run("hi")

    system = loop.get_messages()[0]
    assert system.role == Role.system
    assert system.text.startswith("You are a test agent.\n\nSKILL: be brief")
    assert "### echo" in system.text
    assert "[TOOL_CALL]tool_name:" in system.text


@pytest.mark.asyncio
async def test_system_prompt_without_tools_has_no_catalogue() -> None:
    model = _ScriptedModel(["ok"])
    loop = _loop(model, ToolRegistry(), max_turns=1, system_prompt="plain")

    await loop.run("hi")

    assert loop.get_messages()[0].text == "plain"


@pytest.mark.asyncio
async def test_off_event_and_failing_listener() -> None:
    model = _ScriptedModel(["ok"])
    loop = _loop(model, _registry([]), max_turns=1)
    seen: List[AgentEvent] = []

    def _boom(event: AgentEvent) -> None:
        raise RuntimeError("listener crashed")

    loop.on_event(_boom)
    loop.on_event(seen.append)
    loop.off_event(seen.append)

    assert await loop.run("hi") == "ok"
    assert seen == []


def test_accessors_defaults() -> None:
    loop = _loop(_ScriptedModel(["x"]), ToolRegistry(), working_directory="/tmp/work")

    assert loop.state == AgentState.idle
    assert loop.current_turn == 0
    assert loop.working_directory == "/tmp/work"
    assert loop.get_messages() == []
    assert loop.task_id


def test_max_turns_must_be_positive() -> None:
    with pytest.raises(ValueError):
        _loop(_ScriptedModel(["x"]), ToolRegistry(), max_turns=0)


@pytest.mark.asyncio
async def test_channel_wired_loop_waits_for_approval() -> None:
    calls: List[Dict[str, Any]] = []
    channel = ConfirmationChannel(timeout_seconds=5)
    requests: List[Dict[str, Any]] = []

    def _operator(message: Dict[str, Any]) -> None:
        if message["type"] == "confirmation_request":
            requests.append(message["confirmation"])
            asyncio.get_running_loop().call_later(0.01, channel.approve, message["confirmation"]["id"])

    channel.attach(_operator)
    loop = create_agent_loop(
        tools=_registry(calls),
        model_client=_ScriptedModel([DELETE_CALL, "deleted"]),
        channel=channel,
        max_turns=5,
    )

    assert await loop.run("delete notes.txt") == "deleted"
    assert calls == [{"tool": "delete_file", "path": "notes.txt"}]
    assert requests[0]["taskId"] == loop.task_id
    assert requests[0]["toolName"] == "delete_file"
    assert channel.get_pending() == []


@pytest.mark.asyncio
async def test_channel_timeout_is_a_denial() -> None:
    calls: List[Dict[str, Any]] = []
    loop = create_agent_loop(
        tools=_registry(calls),
        model_client=_ScriptedModel([DELETE_CALL, "timed out"]),
        channel=ConfirmationChannel(timeout_seconds=0.05),
        max_turns=5,
    )

    assert await loop.run("delete") == "timed out"
    assert calls == []
    assert loop.get_messages()[3].text == "Tool delete_file was denied by user"


@pytest.mark.asyncio
async def test_loop_with_pydantic_ai_function_model() -> None:
    calls: List[Dict[str, Any]] = []

    def _model(messages: List[ModelMessage], info: AgentInfo) -> ModelResponse:
        last = str(messages[-1].parts[-1].content)
        if last.startswith("Tool echo result:"):
            return ModelResponse(parts=[TextPart(content="echoed")])
        return ModelResponse(parts=[TextPart(content=ECHO_CALL)])

    loop = create_agent_loop(
        tools=_registry(calls),
        model_client=PydanticAIModelClient(FunctionModel(_model)),
        max_turns=4,
    )

    assert await loop.run("echo hi") == "echoed"
    assert calls == [{"tool": "echo", "text": "hi"}]
