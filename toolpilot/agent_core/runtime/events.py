"""Observable event stream of an agent loop."""

from __future__ import annotations

import logging
from typing import Callable, List

from ..schemas.domain import AgentEvent

logger = logging.getLogger(__name__)

AgentEventListener = Callable[[AgentEvent], None]


class EventEmitter:
    """Fan an ``AgentEvent`` out to listeners in subscription order.

    A listener that raises is logged and skipped; the remaining listeners
    still receive the event and the caller never sees the exception.
    """

    def __init__(self) -> None:
        self._listeners: List[AgentEventListener] = []

    def subscribe(self, listener: AgentEventListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def unsubscribe(self, listener: AgentEventListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def emit(self, event: AgentEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception(f"Agent event listener failed on {event.type.value} event")
