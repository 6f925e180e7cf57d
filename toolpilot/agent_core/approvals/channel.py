from __future__ import annotations

"""Human-in-the-loop confirmation channel.

``ConfirmationChannel`` brokers approval of gated tool calls between an agent
loop (which waits) and any number of observers (which display requests and
relay a human decision back through ``approve``/``deny``).

Lifecycle of one item
---------------------

1. ``submit`` stores a ``PendingApproval``, fixes its deadline at
   ``now + timeout`` and broadcasts a ``confirmation_request`` message with
   long string parameters truncated. When an event loop is running, a timer
   expires the item at the deadline even if nobody waits on it.
2. ``wait_for_resolution`` sleeps until ``approve``/``deny`` wakes it or the
   deadline passes, in which case the item is marked ``expired`` and a
   ``confirmation_expired`` message is broadcast.
3. The item is removed from the channel and the waiter gets ``True`` only if
   the stored status is ``approved``. An item nobody waits on stays
   resolvable through ``wait_for_resolution`` until its deadline and is
   dropped then.

Status changes are a test-and-set under a lock: only a transition away from
``pending`` succeeds, so an item is resolved exactly once no matter which of
approve, deny or timeout gets there first. Once the deadline has passed an
approval or denial is refused and the item expires instead. ``approve``/``deny``
may be called from any thread.
"""

import asyncio
import inspect
import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set, Union

from ...core.config import settings
from ..schemas.domain import ApprovalStatus, ConfirmationRequest, PendingApproval

logger = logging.getLogger(__name__)

ConfirmationMessage = Dict[str, Any]
Observer = Callable[[ConfirmationMessage], Union[None, Awaitable[None]]]


def sanitize_parameters(params: Dict[str, Any], limit: int) -> Dict[str, Any]:
    """Copy ``params`` with string values longer than ``limit`` truncated to ``limit`` + ``...``."""
    sanitized: Dict[str, Any] = {}
    for key, value in params.items():
        if isinstance(value, str) and len(value) > limit:
            sanitized[key] = value[:limit] + "..."
        else:
            sanitized[key] = value
    return sanitized


@dataclass
class _Waiter:
    event: asyncio.Event
    loop: asyncio.AbstractEventLoop


class ConfirmationChannel:
    """Holds in-flight approval requests and notifies observers about them.

    Args:
        timeout_seconds: How long an item may stay pending. Fixed for the
            channel; defaults to ``settings.confirmation.timeout_seconds``.
        display_value_limit: Truncation length for string parameters in
            broadcasts; defaults to ``settings.confirmation.display_value_limit``.
    """

    def __init__(
        self,
        *,
        timeout_seconds: Optional[float] = None,
        display_value_limit: Optional[int] = None,
    ) -> None:
        self._timeout = (
            timeout_seconds if timeout_seconds is not None else settings.confirmation.timeout_seconds
        )
        self._display_limit = (
            display_value_limit if display_value_limit is not None else settings.confirmation.display_value_limit
        )
        self._lock = threading.Lock()
        self._pending: Dict[str, PendingApproval] = {}
        self._waiters: Dict[str, _Waiter] = {}
        self._deadlines: Dict[str, float] = {}
        self._observers: Set[Observer] = set()
        self._observer_tasks: Set[asyncio.Future] = set()

    @property
    def timeout_seconds(self) -> float:
        return self._timeout

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------

    def attach(self, observer: Observer) -> None:
        """Subscribe an observer to all broadcasts. Async observers are scheduled on the running loop."""
        self._observers.add(observer)

    def detach(self, observer: Observer) -> None:
        self._observers.discard(observer)

    @property
    def observer_count(self) -> int:
        return len(self._observers)

    def _broadcast(self, message: ConfirmationMessage) -> None:
        for observer in list(self._observers):
            try:
                result = observer(message)
            except Exception:
                logger.exception(f"Confirmation observer failed on {message.get('type')}")
                continue
            if inspect.isawaitable(result):
                self._schedule(result, message)

    def _schedule(self, awaitable: Awaitable[None], message: ConfirmationMessage) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning(f"No running event loop for async observer; dropped {message.get('type')}")
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            return
        fut = asyncio.ensure_future(awaitable, loop=loop)
        self._observer_tasks.add(fut)
        fut.add_done_callback(self._observer_done)

    def _observer_done(self, fut: asyncio.Future) -> None:
        self._observer_tasks.discard(fut)
        if fut.cancelled():
            return
        exc = fut.exception()
        if exc is not None:
            logger.error(f"Async confirmation observer failed: {exc}", exc_info=exc)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get(self, approval_id: str) -> Optional[PendingApproval]:
        """Return the stored item (full parameters) or ``None``."""
        with self._lock:
            return self._pending.get(approval_id)

    def get_pending(self) -> List[PendingApproval]:
        self._sweep()
        with self._lock:
            return [p for p in self._pending.values() if p.status == ApprovalStatus.pending]

    def to_display(self, item: PendingApproval) -> Dict[str, Any]:
        """The wire form of an item, as sent in ``confirmation_request``."""
        return {
            "id": item.id,
            "toolName": item.tool_name,
            "dangerLevel": item.danger_level.value,
            "description": item.description,
            "parameters": sanitize_parameters(item.parameters, self._display_limit),
            "taskId": item.task_id,
            "timestamp": item.created_at.isoformat(),
        }

    # ------------------------------------------------------------------
    # Request / wait
    # ------------------------------------------------------------------

    def submit(self, request: ConfirmationRequest) -> PendingApproval:
        """Store a new pending item and broadcast it. Does not wait."""
        self._sweep()
        item = PendingApproval(
            tool_name=request.tool_name,
            parameters=dict(request.parameters),
            danger_level=request.danger_level,
            description=request.description,
            task_id=request.task_id,
        )
        with self._lock:
            self._pending[item.id] = item
            self._deadlines[item.id] = time.monotonic() + self._timeout
        try:
            asyncio.get_running_loop().call_later(self._timeout, self._on_deadline, item.id)
        except RuntimeError:
            logger.debug(f"No running event loop; confirmation {item.id} expires on next access")
        logger.info(
            f"Confirmation requested: id={item.id} tool={item.tool_name} "
            f"danger={item.danger_level.value} task={item.task_id}"
        )
        self._broadcast({"type": "confirmation_request", "confirmation": self.to_display(item)})
        return item

    async def wait_for_resolution(self, approval_id: str) -> bool:
        """
        Wait until the item is approved, denied or expires, then remove it.

        Returns:
            True only if the item was approved before its deadline. False on
            denial, expiry, or when the item is missing.
        """
        waiter = _Waiter(event=asyncio.Event(), loop=asyncio.get_running_loop())
        with self._lock:
            item = self._pending.get(approval_id)
            still_pending = item is not None and item.status == ApprovalStatus.pending
            if still_pending:
                self._waiters[approval_id] = waiter
            remaining = self._deadlines.get(approval_id, 0.0) - time.monotonic()

        if still_pending:
            try:
                if remaining <= 0:
                    raise asyncio.TimeoutError
                await asyncio.wait_for(waiter.event.wait(), timeout=remaining)
            except asyncio.TimeoutError:
                self._expire(approval_id)
            except asyncio.CancelledError:
                self._expire(approval_id)
                self._finish(approval_id)
                raise

        resolved = self._finish(approval_id)
        if resolved is None:
            logger.warning(f"Confirmation {approval_id} disappeared before resolution")
            return False
        return resolved.status == ApprovalStatus.approved

    async def request_confirmation(self, request: ConfirmationRequest) -> bool:
        """Submit a request and wait for its resolution."""
        item = self.submit(request)
        return await self.wait_for_resolution(item.id)

    def _finish(self, approval_id: str) -> Optional[PendingApproval]:
        with self._lock:
            self._waiters.pop(approval_id, None)
            self._deadlines.pop(approval_id, None)
            return self._pending.pop(approval_id, None)

    def _drop_unwatched(self, approval_id: str) -> None:
        """Remove a resolved item that no coroutine is waiting on."""
        with self._lock:
            item = self._pending.get(approval_id)
            if item is None or item.status == ApprovalStatus.pending or approval_id in self._waiters:
                return
            del self._pending[approval_id]
            self._deadlines.pop(approval_id, None)
        logger.debug(f"Dropped unwatched confirmation {approval_id} ({item.status.value})")

    def _on_deadline(self, approval_id: str) -> None:
        self._expire(approval_id)
        self._drop_unwatched(approval_id)

    def _sweep(self) -> None:
        """Expire and drop items whose deadline has passed; covers channels used without an event loop."""
        now = time.monotonic()
        with self._lock:
            overdue = [i for i, deadline in self._deadlines.items() if deadline <= now]
        for approval_id in overdue:
            self._on_deadline(approval_id)

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def _transition(self, approval_id: str, status: ApprovalStatus) -> bool:
        with self._lock:
            item = self._pending.get(approval_id)
            if item is None or item.status != ApprovalStatus.pending:
                return False
            # the deadline wins over a late decision
            overdue = (
                status != ApprovalStatus.expired
                and time.monotonic() >= self._deadlines.get(approval_id, float("inf"))
            )
            if overdue:
                return False
            item.status = status
            waiter = self._waiters.get(approval_id)
        if waiter is not None:
            self._wake(waiter)
        return True

    @staticmethod
    def _wake(waiter: _Waiter) -> None:
        try:
            waiter.loop.call_soon_threadsafe(waiter.event.set)
        except RuntimeError:
            # Event loop already closed; nobody is left to wake.
            logger.debug("Confirmation waiter loop is closed")

    def approve(self, approval_id: str) -> bool:
        """Approve a pending item. Returns False if it is unknown, resolved or overdue."""
        self._sweep()
        if not self._transition(approval_id, ApprovalStatus.approved):
            return False
        logger.info(f"Confirmation approved: id={approval_id}")
        self._broadcast({"type": "confirmation_approved", "id": approval_id})
        return True

    def deny(self, approval_id: str) -> bool:
        """Deny a pending item. Returns False if it is unknown, resolved or overdue."""
        self._sweep()
        if not self._transition(approval_id, ApprovalStatus.denied):
            return False
        logger.info(f"Confirmation denied: id={approval_id}")
        self._broadcast({"type": "confirmation_denied", "id": approval_id})
        return True

    def _expire(self, approval_id: str) -> None:
        if self._transition(approval_id, ApprovalStatus.expired):
            logger.warning(f"Confirmation expired after {self._timeout}s: id={approval_id}")
            self._broadcast({"type": "confirmation_expired", "id": approval_id})

    def clear(self) -> int:
        """
        Drop every stored item and wake their waiters, which then resolve False.

        Returns:
            Number of items dropped.
        """
        with self._lock:
            dropped = list(self._pending)
            self._pending.clear()
            self._deadlines.clear()
            waiters = list(self._waiters.values())
        for waiter in waiters:
            self._wake(waiter)
        if dropped:
            logger.info(f"Cleared {len(dropped)} confirmation(s)")
        return len(dropped)
