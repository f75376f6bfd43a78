"""
Session gateway.

Responsibilities:
- Owns the AssessmentSession for one connection
- Discriminates inbound transport messages (control vs audio)
- Routes setReference -> session restart, audio -> session
- Logs and drops anything malformed
- Ensures no message reaches the client after disconnect

NOT responsible for:
- Engine lifecycle decisions (AssessmentSession)
- Socket ownership (server.routes)
"""

from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import uuid4

from adapters.engine.base import RecognitionEngine
from audio.frames import AudioFrame
from observability.logger import log_event, now_ms
from protocol.channel import BinaryProtocolError, Inbound, classify_inbound
from protocol.control import (
    ControlMessageError,
    SetReference,
    UnknownControlType,
)
from session.assessment_session import AssessmentSession
from session.connection import Connection

if TYPE_CHECKING:
    from config import AppConfig


def _new_session_id() -> str:
    return f"sess_{uuid4().hex[:12]}"


class SessionGateway:
    """
    One gateway == one connection == one assessment session.
    """

    def __init__(
        self,
        *,
        config: AppConfig,
        engine: RecognitionEngine,
    ) -> None:
        self._config = config
        self._engine = engine
        self._connection: Connection | None = None
        self.session: AssessmentSession | None = None
        self._inbound_seq = 0

    async def on_ws_connect(self, connection: Connection) -> None:
        """Called once the WebSocket is accepted."""
        self._connection = connection
        self.session = AssessmentSession(
            session_id=_new_session_id(),
            engine=self._engine,
            connection=connection,
            reference_text=self._config.default_reference_text,
            engine_stop_timeout_s=self._config.engine_stop_timeout_s,
        )
        connection.session_id = self.session.session_id

        await self.session.start()

    async def on_ws_disconnect(self, reason: str | None = None) -> None:
        """Called when the WebSocket closes, normally or not."""
        if self._connection is not None:
            self._connection.mark_closed()

        if self.session is None:
            log_event({
                "ts_ms": now_ms(),
                "event_type": "WS_DISCONNECT_WITHOUT_SESSION",
                "reason": reason,
            })
            return

        await self.session.close(reason=reason)

    async def on_text_message(self, payload: str) -> None:
        """Text frames are control messages."""
        self._route(self._classify(text=payload))

    async def on_binary_message(self, payload: bytes) -> None:
        """Binary frames are audio (or sniffed control for legacy clients)."""
        self._route(self._classify(data=payload))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _classify(
        self,
        *,
        text: str | None = None,
        data: bytes | None = None,
    ) -> Inbound | None:
        session_id = self.session.session_id if self.session else None
        self._inbound_seq += 1

        try:
            return classify_inbound(
                text=text,
                data=data,
                sequence_num=self._inbound_seq,
                ts_ms=now_ms(),
                sniff_binary=self._config.legacy_binary_control,
            )
        except UnknownControlType as e:
            log_event({
                "ts_ms": now_ms(),
                "event_type": "UNKNOWN_MESSAGE_TYPE",
                "session_id": session_id,
                "msg_type": e.msg_type,
            })
        except ControlMessageError as e:
            log_event({
                "ts_ms": now_ms(),
                "event_type": "CONTROL_DECODE_ERROR",
                "session_id": session_id,
                "error": str(e),
                "payload_preview": (text or "")[:100],
            })
        except BinaryProtocolError as e:
            log_event({
                "ts_ms": now_ms(),
                "event_type": "BINARY_DECODE_ERROR",
                "session_id": session_id,
                "error": str(e),
                "payload_len": len(data or b""),
            })
        return None

    def _route(self, inbound: Inbound | None) -> None:
        if inbound is None:
            return

        if self.session is None:
            log_event({
                "ts_ms": now_ms(),
                "event_type": "MESSAGE_WITHOUT_SESSION",
                "message": type(inbound).__name__,
            })
            return

        if isinstance(inbound, AudioFrame):
            self.session.push_audio(inbound)
            return

        if isinstance(inbound, SetReference):
            log_event({
                "ts_ms": now_ms(),
                "event_type": "SET_REFERENCE_RECEIVED",
                "session_id": self.session.session_id,
                "text": inbound.text,
            })
            self.session.set_reference(inbound.text)
            return

        # info/partial/final/error only travel server -> client
        log_event({
            "ts_ms": now_ms(),
            "event_type": "UNEXPECTED_CONTROL_DIRECTION",
            "session_id": self.session.session_id,
            "message": type(inbound).__name__,
        })
