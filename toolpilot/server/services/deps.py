"""
Confirmation Channel Dependency.

The channel is created with the application and kept on ``app.state``; HTTP
and WebSocket endpoints receive it through ``ChannelDep``.
"""

from typing import Annotated

from fastapi import Depends
from starlette.requests import HTTPConnection

from toolpilot.agent_core.approvals import ConfirmationChannel


def get_channel(connection: HTTPConnection) -> ConfirmationChannel:
    return connection.app.state.confirmation_channel


ChannelDep = Annotated[ConfirmationChannel, Depends(get_channel)]
