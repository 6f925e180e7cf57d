"""toolpilot.

A tool-calling agent engine: a bounded conversational loop that turns a
natural-language instruction into a sequence of tool invocations, gated by a
risk-based human confirmation protocol.

High-level architecture
-----------------------

- ``toolpilot.agent_core``:

  - ``tools``: the uniform tool contract and the ``ToolRegistry`` that
    validates and dispatches calls.
  - ``policy``: the static ``SecurityPolicy`` table (danger level and
    confirmation requirement per tool).
  - ``approvals``: the ``ConfirmationChannel`` that brokers human approval of
    gated tool calls.
  - ``runtime``: the LangGraph-based ``AgentLoop`` that drives the model,
    extracts tool calls from its output and folds results back.

- ``toolpilot.server``: a FastAPI surface that lets a UI observe and resolve
  pending confirmations.

- ``toolpilot.core``: settings, logging and monitoring.

Typical workflow
----------------

1. Register tools in a ``ToolRegistry``.
2. Build an ``AgentLoop`` with ``agent_core.factory.create_agent_loop``.
3. ``await loop.run(instruction)`` and observe events via ``loop.on_event``.
4. Approve or deny gated calls through the ``ConfirmationChannel`` (directly or
   via the server endpoints).
"""
