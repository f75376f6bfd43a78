"""
Server side of the duplex channel, as seen by the session.

connection_status is tracked separately from the session lifecycle:
DOWN | UP. The session only holds a non-owning reference and uses it to
send control messages; the transport layer owns the socket.
"""

from __future__ import annotations

from enum import Enum
from typing import Protocol

from fastapi import WebSocket

from observability.logger import log_event, now_ms
from protocol.control import ControlMessage, encode_control


class ConnectionStatus(Enum):
    """Transport status, independent of LifecycleState."""
    DOWN = "DOWN"  # Closed or failed; sends are no-ops
    UP = "UP"      # Active WebSocket connection


class Connection(Protocol):
    """What the session needs from the transport."""

    status: ConnectionStatus
    session_id: str | None

    async def send_control(self, msg: ControlMessage) -> bool:
        """Send one control message. Returns False if it was not sent."""
        ...  # pylint: disable=unnecessary-ellipsis

    def mark_closed(self) -> None:
        """Stop all further sends."""
        ...  # pylint: disable=unnecessary-ellipsis


class WebSocketConnection:
    """
    Connection over a FastAPI/Starlette WebSocket.

    Send failures are transport errors: logged, status flips to DOWN,
    never raised to the session.
    """

    def __init__(self, ws: WebSocket, *, session_id: str | None = None) -> None:
        self._ws = ws
        self.session_id = session_id
        self.status = ConnectionStatus.UP

    async def send_control(self, msg: ControlMessage) -> bool:
        if self.status is not ConnectionStatus.UP:
            return False

        try:
            await self._ws.send_text(encode_control(msg))
        except Exception as e:  # pylint: disable=broad-exception-caught
            self.status = ConnectionStatus.DOWN
            log_event({
                "ts_ms": now_ms(),
                "event_type": "WS_SEND_FAILED",
                "session_id": self.session_id,
                "exception": type(e).__name__,
                "message": str(e),
            })
            return False

        return True

    def mark_closed(self) -> None:
        self.status = ConnectionStatus.DOWN
