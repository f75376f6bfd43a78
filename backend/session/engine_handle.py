"""
Engine handle: one engine session, tagged with a generation number.

Every event the engine emits is forwarded to the owner's sink together
with the handle's generation, so the owner can tell events of the
current engine from those of a superseded one. stop() unsubscribes
before asking the engine to stop, so nothing reaches the sink afterwards
even if the engine misbehaves.
"""

from __future__ import annotations

import asyncio
from typing import Callable

from adapters.engine.base import EngineEvent, EngineSession, RecognitionEngine
from observability.logger import log_event, now_ms
from observability.metrics import timed


EngineEventSink = Callable[[int, EngineEvent], None]


class EngineHandle:
    """Owns exactly one EngineSession for one reference text."""

    def __init__(
        self,
        *,
        generation: int,
        reference_text: str,
        sink: EngineEventSink,
        session_id: str,
    ) -> None:
        self.generation = generation
        self.reference_text = reference_text
        self._sink = sink
        self._session_id = session_id
        self._engine_session: EngineSession | None = None
        self._subscribed = True
        self._stopped = False

    @property
    def is_open(self) -> bool:
        return self._engine_session is not None and not self._stopped

    def emit(self, event: EngineEvent) -> None:
        """Callback handed to the engine."""
        if not self._subscribed:
            return
        self._sink(self.generation, event)

    async def open(self, engine: RecognitionEngine) -> None:
        """
        Start the engine session. EngineError propagates to the caller.
        """
        with timed(
            "engine_open_latency",
            session_id=self._session_id,
            generation=self.generation,
        ) as timer:
            timer.details["reference_chars"] = len(self.reference_text)
            self._engine_session = await engine.open(self.reference_text, self.emit)

        log_event({
            "ts_ms": now_ms(),
            "event_type": "ENGINE_OPENED",
            "session_id": self._session_id,
            "generation": self.generation,
            "reference_text": self.reference_text,
        })

    def write(self, pcm_bytes: bytes) -> None:
        if not self.is_open:
            return
        assert self._engine_session is not None
        self._engine_session.write(pcm_bytes)

    async def stop(self, *, timeout_s: float) -> None:
        """
        Unsubscribe, then stop the engine session (bounded by timeout_s).

        Never raises: failures and timeouts are logged and the handle is
        considered stopped regardless.
        """
        if self._stopped:
            return
        self._stopped = True
        self._subscribed = False

        engine_session = self._engine_session
        if engine_session is None:
            return

        try:
            with timed(
                "engine_stop_latency",
                session_id=self._session_id,
                generation=self.generation,
            ):
                await asyncio.wait_for(engine_session.stop(), timeout=timeout_s)
        except asyncio.TimeoutError:
            log_event({
                "ts_ms": now_ms(),
                "event_type": "ENGINE_STOP_TIMEOUT",
                "session_id": self._session_id,
                "generation": self.generation,
                "timeout_s": timeout_s,
            })
            return
        except Exception as e:  # pylint: disable=broad-exception-caught
            log_event({
                "ts_ms": now_ms(),
                "event_type": "ENGINE_STOP_FAILED",
                "session_id": self._session_id,
                "generation": self.generation,
                "exception": type(e).__name__,
                "message": str(e),
            })
            return

        log_event({
            "ts_ms": now_ms(),
            "event_type": "ENGINE_STOPPED",
            "session_id": self._session_id,
            "generation": self.generation,
        })
