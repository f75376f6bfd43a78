"""
Client side of the duplex channel.

- open() waits at most WS_OPEN_TIMEOUT_S for the socket, then proceeds
  anyway; the connection attempt keeps running in the background.
- Audio is dropped (never queued) while the socket is not open.
- Control messages and audio share one outbound queue so they leave in
  the order they were produced.
- Server messages are decoded and handed to on_message; anything
  unparseable is logged and ignored.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Callable, Union

from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import ConnectionClosed

from audio.frames import AudioFrame
from constants import CLIENT_SEND_QUEUE_MAX_FRAMES, WS_OPEN_TIMEOUT_S
from observability.logger import log_event, now_ms
from protocol.control import (
    ControlMessage,
    ControlMessageError,
    SetReference,
    decode_control,
    encode_control,
)


Outbound = Union[str, bytes]
MessageHandler = Callable[[ControlMessage], None]


@dataclass
class ClientDropCounters:
    """Audio frames the client chose not to send."""
    not_open: int = 0
    overflow: int = 0


class ClientChannel:
    """One WebSocket connection to the assessment server."""

    def __init__(
        self,
        url: str,
        *,
        on_message: MessageHandler,
        open_timeout_s: float = WS_OPEN_TIMEOUT_S,
        send_queue_max: int = CLIENT_SEND_QUEUE_MAX_FRAMES,
    ) -> None:
        self._url = url
        self._on_message = on_message
        self._open_timeout_s = open_timeout_s

        self._ws: ClientConnection | None = None
        self._open = False
        self._closing = False

        self._outbound: asyncio.Queue[Outbound] = asyncio.Queue(maxsize=send_queue_max)
        self._connect_task: asyncio.Task[None] | None = None
        self._sender_task: asyncio.Task[None] | None = None
        self._receiver_task: asyncio.Task[None] | None = None

        self.drops = ClientDropCounters()

    @property
    def is_open(self) -> bool:
        return self._open

    # -------------------------------------------------------------------------
    # Connection management
    # -------------------------------------------------------------------------

    async def open(self) -> bool:
        """
        Start connecting and wait up to open_timeout_s.

        Returns True if the socket is open on return. Never raises on
        connection failure; callers proceed either way.
        """
        if self._connect_task is None:
            self._connect_task = asyncio.create_task(self._connect())

        done, _ = await asyncio.wait({self._connect_task}, timeout=self._open_timeout_s)
        if not done:
            log_event({
                "ts_ms": now_ms(),
                "event_type": "WS_OPEN_TIMEOUT",
                "url": self._url,
                "timeout_s": self._open_timeout_s,
            })
        return self._open

    async def _connect(self) -> None:
        try:
            ws = await connect(self._url)
        except Exception as e:  # pylint: disable=broad-exception-caught
            log_event({
                "ts_ms": now_ms(),
                "event_type": "WS_CONNECT_FAILED",
                "url": self._url,
                "exception": type(e).__name__,
                "message": str(e),
            })
            return

        if self._closing:
            await ws.close()
            return

        self._ws = ws
        self._open = True
        log_event({"ts_ms": now_ms(), "event_type": "WS_OPEN", "url": self._url})

        self._sender_task = asyncio.create_task(self._send_loop(ws))
        self._receiver_task = asyncio.create_task(self._receive_loop(ws))

    async def close(self) -> None:
        """
        Close the socket and stop background tasks.

        Every step is attempted; failures are logged, not raised.
        """
        self._closing = True
        self._open = False

        for name, task in (
            ("connect", self._connect_task),
            ("sender", self._sender_task),
            ("receiver", self._receiver_task),
        ):
            if task is None or task.done():
                continue
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
            except Exception as e:  # pylint: disable=broad-exception-caught
                _log_cleanup_error(f"{name}_task", e)

        ws = self._ws
        self._ws = None
        if ws is not None:
            try:
                await ws.close()
            except Exception as e:  # pylint: disable=broad-exception-caught
                _log_cleanup_error("websocket", e)

        log_event({
            "ts_ms": now_ms(),
            "event_type": "WS_CLOSED",
            "url": self._url,
            "dropped_not_open": self.drops.not_open,
            "dropped_overflow": self.drops.overflow,
        })

    # -------------------------------------------------------------------------
    # Outbound
    # -------------------------------------------------------------------------

    def send_audio(self, frame: AudioFrame) -> bool:
        """
        Queue one frame for sending. Non-blocking.

        Returns False if the frame was dropped (socket not open or the
        outbound queue is full).
        """
        if not self._open:
            self.drops.not_open += 1
            return False

        try:
            self._outbound.put_nowait(frame.pcm_bytes)
        except asyncio.QueueFull:
            self.drops.overflow += 1
            return False
        return True

    async def send_reference(self, text: str) -> bool:
        """Ask the server to assess against a new reference text."""
        if not self._open:
            log_event({
                "ts_ms": now_ms(),
                "event_type": "SET_REFERENCE_NOT_SENT",
                "reason": "channel_not_open",
            })
            return False

        await self._outbound.put(encode_control(SetReference(text=text)))
        return True

    async def _send_loop(self, ws: ClientConnection) -> None:
        try:
            while True:
                item = await self._outbound.get()
                await ws.send(item)
        except ConnectionClosed as e:
            self._open = False
            log_event({
                "ts_ms": now_ms(),
                "event_type": "WS_SEND_FAILED",
                "exception": type(e).__name__,
                "message": str(e),
            })

    # -------------------------------------------------------------------------
    # Inbound
    # -------------------------------------------------------------------------

    async def _receive_loop(self, ws: ClientConnection) -> None:
        try:
            async for raw in ws:
                if isinstance(raw, bytes):
                    log_event({
                        "ts_ms": now_ms(),
                        "event_type": "UNEXPECTED_BINARY_FROM_SERVER",
                        "payload_len": len(raw),
                    })
                    continue

                try:
                    msg = decode_control(raw)
                except ControlMessageError as e:
                    log_event({
                        "ts_ms": now_ms(),
                        "event_type": "WS_MESSAGE_PARSE_ERROR",
                        "error": str(e),
                        "payload_preview": raw[:100],
                    })
                    continue

                self._on_message(msg)
        except ConnectionClosed:
            pass
        finally:
            self._open = False
            if not self._closing:
                log_event({"ts_ms": now_ms(), "event_type": "WS_REMOTE_CLOSED", "url": self._url})


def _log_cleanup_error(resource: str, exc: Exception) -> None:
    log_event({
        "ts_ms": now_ms(),
        "event_type": "CLEANUP_ERROR",
        "resource": resource,
        "exception": type(exc).__name__,
        "message": str(exc),
    })
