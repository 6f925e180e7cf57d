"""Confirmation subsystem for gated tool calls.

 - ``ConfirmationChannel`` stores pending approvals, broadcasts them to
   observers and resolves each one exactly once (approved, denied or
   expired).
 - ``ChannelConfirmationHandler`` plugs a channel into the agent loop as its
   confirmation handler.
 - ``sanitize_parameters`` produces the truncated parameter copy sent to
   observers.
 """

from .channel import ConfirmationChannel, ConfirmationMessage, Observer, sanitize_parameters
from .handler import ChannelConfirmationHandler

__all__ = [
    "ConfirmationChannel",
    "ConfirmationMessage",
    "Observer",
    "ChannelConfirmationHandler",
    "sanitize_parameters",
]
