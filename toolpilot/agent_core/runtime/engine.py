from __future__ import annotations

"""LangGraph agent loop.

``AgentLoop`` drives a bounded multi-turn exchange with a generative model and
turns its output into effects through registered tools.

Execution model
---------------

The loop is a LangGraph state machine with three nodes:

- ``think`` calls the model with the whole conversation, appends the reply as
  an assistant turn and extracts tool invocations from it.
- ``act`` processes the extracted invocations in order: policy check, optional
  confirmation, dispatch through the registry and fold-back of the result as a
  user turn.
- ``finish`` ends the graph.

A reply without invocations is the final answer. Running out of turns is a
soft termination and ``run`` returns ``""``.

Confirmation gate
-----------------

A tool the ``SecurityPolicy`` marks as requiring confirmation is only
dispatched once the confirmation handler approves it. Without a handler the
``unconfirmed_gate`` setting decides: ``allow`` dispatches it, ``deny`` folds
it back as denied.

Failures
--------

Tool problems are folded into the conversation as text. Only a failed model
call aborts the run, with ``ModelCallFailure``.
"""

import logging
import time
from typing import List, Literal, Optional

from langgraph.graph import END, StateGraph

from ...core.config import settings
from ...core.monitoring import log_agent_completion, log_agent_run
from ..errors import AgentBusyError, ModelCallFailure
from ..policy.models import is_at_least
from ..schemas.domain import (
    AgentEvent,
    AgentEventType,
    AgentState,
    DangerLevel,
    Role,
    ToolExecutionResult,
    ToolInvocationRequest,
    Turn,
    new_id,
)
from .events import AgentEventListener, EventEmitter
from .extraction import extract_tool_calls
from .models import TOOL_INSTRUCTIONS, LoopDeps, _LoopState

logger = logging.getLogger(__name__)

DENIED_ERROR = "Confirmation denied by user"
CANCELLED_ERROR = "Run cancelled"


class AgentLoop:
    """Run instructions against a model with gated tool access.

    Args:
        deps: Model client, tool registry, security policy and optional
            confirmation handler.
        max_turns: Turn budget per run. Defaults to ``settings.agent.max_turns``.
        system_prompt: Base system prompt. Defaults to ``settings.agent.system_prompt``.
        skill_prompt: Optional static text appended to the system prompt.
        working_directory: Root directory handed to tools, informational for
            the loop itself.
        unconfirmed_gate: ``"allow"`` or ``"deny"``; see the module docstring.
    """

    def __init__(
        self,
        *,
        deps: LoopDeps,
        max_turns: Optional[int] = None,
        system_prompt: Optional[str] = None,
        skill_prompt: Optional[str] = None,
        working_directory: Optional[str] = None,
        unconfirmed_gate: Optional[Literal["allow", "deny"]] = None,
    ) -> None:
        self._deps = deps
        self._max_turns = max_turns if max_turns is not None else settings.agent.max_turns
        if self._max_turns < 1:
            raise ValueError("max_turns must be at least 1")
        self._system_prompt = system_prompt if system_prompt is not None else settings.agent.system_prompt
        self._skill_prompt = skill_prompt
        self._working_directory = (
            working_directory if working_directory is not None else settings.agent.working_directory
        )
        self._unconfirmed_gate = unconfirmed_gate or settings.agent.unconfirmed_gate

        self._events = EventEmitter()
        self._messages: List[Turn] = []
        self._state = AgentState.idle
        self._task_id = new_id()
        self._current_turn = 0
        self._running = False
        self._cancelled = False
        self._graph = self._build_graph()

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def task_id(self) -> str:
        """Identifier of the current (or last) run; regenerated by ``run``."""
        return self._task_id

    @property
    def state(self) -> AgentState:
        return self._state

    @property
    def current_turn(self) -> int:
        return self._current_turn

    @property
    def max_turns(self) -> int:
        return self._max_turns

    @property
    def working_directory(self) -> str:
        return self._working_directory

    @property
    def is_running(self) -> bool:
        return self._running

    def get_messages(self) -> List[Turn]:
        """Return a copy of the conversation."""
        return list(self._messages)

    def on_event(self, listener: AgentEventListener) -> None:
        self._events.subscribe(listener)

    def off_event(self, listener: AgentEventListener) -> None:
        self._events.unsubscribe(listener)

    # ------------------------------------------------------------------
    # Graph
    # ------------------------------------------------------------------

    def _build_graph(self):
        """Build and compile the LangGraph state machine."""
        g: StateGraph = StateGraph(_LoopState)
        g.add_node("think", self._node_think)
        g.add_node("act", self._node_act)
        g.add_node("finish", self._node_finish)

        g.set_entry_point("think")
        g.add_conditional_edges(
            "think",
            self._route_after_think,
            {"act": "act", "finish": "finish"},
        )
        g.add_conditional_edges(
            "act",
            self._route_after_act,
            {"think": "think", "finish": "finish"},
        )
        g.add_edge("finish", END)
        return g.compile()

    def _recursion_limit(self) -> int:
        # Two node visits per turn plus entry and finish.
        return max(25, 2 * self._max_turns + 5)

    # ------------------------------------------------------------------
    # Run control
    # ------------------------------------------------------------------

    async def run(self, instruction: str, model: Optional[str] = None) -> str:
        """
        Execute an instruction to completion.

        Args:
            instruction: The user instruction.
            model: Optional model override for this run.

        Returns:
            The final answer, or ``""`` when the turn budget ran out or the run
            was cancelled.

        Raises:
            AgentBusyError: If a run is already in flight on this loop.
            ModelCallFailure: If the model call failed. The state is ``error``.
        """
        if self._running:
            raise AgentBusyError(f"Agent loop {self._task_id} is already running")
        self._running = True
        self._cancelled = False
        self._task_id = new_id()
        self._current_turn = 0
        self._messages = [
            Turn(role=Role.system, text=self._compose_system_prompt()),
            Turn(role=Role.user, text=instruction),
        ]

        started = time.monotonic()
        logger.info(f"Agent run {self._task_id} started (max_turns={self._max_turns})")
        log_agent_run(self._task_id, instruction, self._max_turns)

        self._set_state(AgentState.thinking)
        self._emit(AgentEventType.message, message=instruction)

        try:
            initial: _LoopState = {"turn": 0, "calls": [], "final_text": None, "model": model, "_failure": None}
            final = await self._graph.ainvoke(initial, config={"recursion_limit": self._recursion_limit()})
            failure = final.get("_failure")
            if failure is not None:
                raise ModelCallFailure(f"Model call failed: {failure}") from failure
        except Exception as e:
            self._set_state(AgentState.error)
            self._emit(AgentEventType.error, error=str(e))
            logger.error(f"Agent run {self._task_id} failed: {e}")
            raise
        finally:
            self._running = False
            duration_ms = (time.monotonic() - started) * 1000
            log_agent_completion(self._task_id, self._state.value, self._current_turn, duration_ms)

        self._set_state(AgentState.done)
        if self._cancelled:
            logger.info(f"Agent run {self._task_id} cancelled at turn {self._current_turn}")
            return ""
        final_text = final.get("final_text")
        if final_text is None:
            logger.warning(
                f"Agent run {self._task_id} exhausted its turn budget ({self._max_turns}) without a final answer"
            )
            return ""
        logger.info(f"Agent run {self._task_id} finished after {self._current_turn} turn(s)")
        return final_text

    def cancel(self) -> None:
        """
        Stop the loop and mark it ``done``.

        In-flight model or tool calls are not interrupted; their results are
        ignored once control returns to the loop.
        """
        self._cancelled = True
        self._set_state(AgentState.done)

    # ------------------------------------------------------------------
    # Nodes
    # ------------------------------------------------------------------

    async def _node_think(self, state: _LoopState) -> _LoopState:
        """Issue one model call and extract invocations from the reply."""
        if self._cancelled:
            state["calls"] = []
            return state

        turn = state["turn"] + 1
        state["turn"] = turn
        self._current_turn = turn
        self._set_state(AgentState.thinking)

        try:
            reply = await self._deps.model_client.complete(self.get_messages(), model=state.get("model"))
        except Exception as e:
            if self._cancelled:
                logger.debug(f"Ignoring model failure on turn {turn} after cancel: {e}")
                state["calls"] = []
                return state
            logger.debug(f"Model call failed on turn {turn}: {e}", exc_info=True)
            state["_failure"] = e
            state["calls"] = []
            return state

        if self._cancelled:
            state["calls"] = []
            return state

        text = reply.content
        self._messages.append(Turn(role=Role.assistant, text=text))
        self._emit(AgentEventType.thought, thought=text)

        calls = extract_tool_calls(text, set(self._deps.tools.names()))
        logger.debug(f"Turn {turn}: extracted {len(calls)} tool call(s)")
        state["calls"] = calls
        if not calls:
            state["final_text"] = text
        return state

    def _route_after_think(self, state: _LoopState) -> str:
        if state.get("_failure") is not None or self._cancelled or not state["calls"]:
            return "finish"
        return "act"

    async def _node_act(self, state: _LoopState) -> _LoopState:
        """Process the extracted invocations in order."""
        for call in state["calls"]:
            if self._cancelled:
                break
            await self._process_call(call)
        state["calls"] = []
        return state

    def _route_after_act(self, state: _LoopState) -> str:
        if self._cancelled or state["turn"] >= self._max_turns:
            return "finish"
        return "think"

    async def _node_finish(self, state: _LoopState) -> _LoopState:
        return state

    # ------------------------------------------------------------------
    # Invocation processing
    # ------------------------------------------------------------------

    async def _process_call(self, call: ToolInvocationRequest) -> None:
        self._set_state(AgentState.acting)
        self._emit(AgentEventType.tool_call, tool_call=call)

        if not await self._gate(call):
            self._emit(AgentEventType.tool_result, tool_result=ToolExecutionResult.fail(DENIED_ERROR))
            self._fold(f"Tool {call.name} was denied by user")
            self._set_state(AgentState.thinking)
            return

        if self._cancelled:
            self._emit(AgentEventType.tool_result, tool_result=ToolExecutionResult.fail(CANCELLED_ERROR))
            return

        result = await self._deps.tools.execute(call)
        self._emit(AgentEventType.tool_result, tool_result=result)
        if self._cancelled:
            return

        if result.success:
            self._fold(f"Tool {call.name} result: {result.output}")
        else:
            self._fold(f"Tool {call.name} error: {result.error}")
        self._set_state(AgentState.thinking)

    async def _gate(self, call: ToolInvocationRequest) -> bool:
        """Return whether ``call`` may be dispatched."""
        policy = self._deps.policy
        if not policy.requires_confirmation(call.name):
            return True

        handler = self._deps.confirmation_handler
        if handler is None:
            if self._unconfirmed_gate == "deny":
                logger.warning(f"Refusing '{call.name}': confirmation required but no handler is configured")
                return False
            danger = policy.danger_level(call.name)
            if is_at_least(danger, DangerLevel.high):
                logger.warning(f"Running '{call.name}' ({danger.value}) without confirmation: no handler configured")
            return True

        self._emit(AgentEventType.message, message=f"Waiting for confirmation to execute {call.name}...")
        try:
            approved = await handler(call.name, dict(call.parameters))
        except Exception:
            logger.exception(f"Confirmation handler failed for '{call.name}'; treating as denied")
            return False
        if not approved:
            logger.warning(f"Tool call '{call.name}' was denied")
        return bool(approved)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _compose_system_prompt(self) -> str:
        sections = [self._system_prompt]
        if self._skill_prompt:
            sections.append(self._skill_prompt)
        if self._deps.tools.names():
            sections.append(TOOL_INSTRUCTIONS.format(catalogue=self._deps.tools.describe()))
        return "\n\n".join(sections)

    def _fold(self, text: str) -> None:
        self._messages.append(Turn(role=Role.user, text=text))

    def _set_state(self, state: AgentState) -> None:
        if state == self._state:
            return
        self._state = state
        self._emit(AgentEventType.state_change, state=state)

    def _emit(self, event_type: AgentEventType, **payload) -> None:
        self._events.emit(AgentEvent(type=event_type, task_id=self._task_id, **payload))
