"""
Assessment session: one connection, one live recognition engine.

Responsibilities:
- Start an engine session on connect with the default reference text
- Restart it (stop old, then open new) on every reference change
- Route inbound audio into the current engine while ACTIVE
- Route engine events back to the client as control messages
- Tear everything down exactly once on close

Ordering rules:
- A reference change flips the state to RESTARTING immediately; the
  restart itself runs as a task so the receive loop keeps draining the
  socket. Audio seen while not ACTIVE is dropped, never queued.
- Restarts are serialized by a lock. Each one stops the previous engine
  before the next open() begins.
- Engine events travel through one queue tagged with the engine's
  generation. Only events from the current generation while ACTIVE
  become partial/final messages.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass

from adapters.engine.base import (
    EngineError,
    EngineEvent,
    EngineFailure,
    EnginePartial,
    EngineRecognized,
    RecognitionEngine,
)
from audio.frames import AudioFrame
from constants import DEFAULT_REFERENCE_TEXT, ENGINE_STOP_TIMEOUT_S
from observability.logger import log_event, now_ms
from protocol.control import ControlMessage, Error, Final, Info, Partial
from session.connection import Connection
from session.engine_handle import EngineHandle
from session.lifecycle import LifecycleState, check_transition


@dataclass
class AudioCounters:
    """Per-session audio routing counters for observability."""
    routed: int = 0
    dropped_inactive: int = 0
    write_failed: int = 0


class AssessmentSession:
    """
    Session Lifecycle Manager for one connection.

    Public API is called by SessionGateway from the connection's task:
    start(), set_reference(), push_audio(), close().
    """

    def __init__(
        self,
        *,
        session_id: str,
        engine: RecognitionEngine,
        connection: Connection,
        reference_text: str = DEFAULT_REFERENCE_TEXT,
        engine_stop_timeout_s: float = ENGINE_STOP_TIMEOUT_S,
    ) -> None:
        self.session_id = session_id
        self.reference_text = reference_text
        self.state = LifecycleState.UNINITIALIZED
        self.counters = AudioCounters()

        self._engine = engine
        self._connection = connection
        self._engine_stop_timeout_s = engine_stop_timeout_s

        self._handle: EngineHandle | None = None
        self._generation = 0
        self._events: asyncio.Queue[tuple[int, EngineEvent]] = asyncio.Queue()
        self._pump_task: asyncio.Task[None] | None = None

        self._lock = asyncio.Lock()
        self._requested_reference = reference_text
        self._pending_restarts = 0
        self._restart_tasks: set[asyncio.Task[None]] = set()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """UNINITIALIZED -> ACTIVE with the initial reference text."""
        log_event({
            "ts_ms": now_ms(),
            "event_type": "SESSION_STARTED",
            "session_id": self.session_id,
            "reference_text": self.reference_text,
        })
        self._pump_task = asyncio.create_task(self._pump_events())
        async with self._lock:
            await self._activate()

    def set_reference(self, text: str) -> asyncio.Task[None] | None:
        """
        Begin a restart bound to `text` (empty keeps the current reference).

        Always restarts, even when the text is unchanged. Returns the
        restart task, or None if the session is already closed.
        """
        if self.state is LifecycleState.CLOSED:
            log_event({
                "ts_ms": now_ms(),
                "event_type": "SET_REFERENCE_AFTER_CLOSE",
                "session_id": self.session_id,
            })
            return None

        target = text or self._requested_reference
        self._requested_reference = target
        self._pending_restarts += 1
        self._transition(LifecycleState.RESTARTING, cause="set_reference")

        task = asyncio.create_task(self._restart(target))
        self._restart_tasks.add(task)
        task.add_done_callback(self._restart_tasks.discard)
        return task

    def push_audio(self, frame: AudioFrame) -> bool:
        """
        Route one frame into the current engine.

        Returns:
            True if written, False if dropped (not ACTIVE or write failed).
        """
        handle = self._handle
        if self.state is not LifecycleState.ACTIVE or handle is None:
            self.counters.dropped_inactive += 1
            log_event({
                "ts_ms": now_ms(),
                "event_type": "AUDIO_FRAME_DROPPED",
                "session_id": self.session_id,
                "seq_num": frame.sequence_num,
                "lifecycle_state": self.state.value,
            })
            return False

        try:
            handle.write(frame.pcm_bytes)
        except Exception as e:  # pylint: disable=broad-exception-caught
            self.counters.write_failed += 1
            log_event({
                "ts_ms": now_ms(),
                "event_type": "ENGINE_WRITE_FAILED",
                "session_id": self.session_id,
                "generation": handle.generation,
                "seq_num": frame.sequence_num,
                "exception": type(e).__name__,
                "message": str(e),
            })
            return False

        self.counters.routed += 1
        return True

    async def close(self, reason: str | None = None) -> None:
        """
        -> CLOSED. Stops the engine and the event pump. Idempotent.

        Every step is attempted even if an earlier one fails.
        """
        if self.state is LifecycleState.CLOSED:
            return
        self._transition(LifecycleState.CLOSED, cause=reason or "close")

        # Waits out any in-flight restart so a freshly opened engine is seen
        async with self._lock:
            handle = self._handle
            self._handle = None
            if handle is not None:
                await handle.stop(timeout_s=self._engine_stop_timeout_s)

        # Restarts queued behind the lock see CLOSED and return at once
        if self._restart_tasks:
            results = await asyncio.gather(*self._restart_tasks, return_exceptions=True)
            for result in results:
                if isinstance(result, Exception):
                    self._log_cleanup_error("restart_task", result)

        pump = self._pump_task
        self._pump_task = None
        if pump is not None:
            pump.cancel()
            try:
                await pump
            except asyncio.CancelledError:
                pass
            except Exception as e:  # pylint: disable=broad-exception-caught
                self._log_cleanup_error("event_pump", e)

        log_event({
            "ts_ms": now_ms(),
            "event_type": "SESSION_CLOSED",
            "session_id": self.session_id,
            "reason": reason,
            "generations": self._generation,
            "audio_routed": self.counters.routed,
            "audio_dropped_inactive": self.counters.dropped_inactive,
            "audio_write_failed": self.counters.write_failed,
        })

    # ------------------------------------------------------------------
    # Restart machinery (lock held)
    # ------------------------------------------------------------------

    async def _restart(self, target: str) -> None:
        async with self._lock:
            self._pending_restarts -= 1
            if self.state is LifecycleState.CLOSED:
                return

            handle = self._handle
            self._handle = None
            if handle is not None:
                await handle.stop(timeout_s=self._engine_stop_timeout_s)

            self.reference_text = target
            await self._activate()

    async def _activate(self) -> None:
        if self.state is LifecycleState.CLOSED:
            return

        self._generation += 1
        handle = EngineHandle(
            generation=self._generation,
            reference_text=self.reference_text,
            sink=self._enqueue_engine_event,
            session_id=self.session_id,
        )

        try:
            await handle.open(self._engine)
        except EngineError as e:
            log_event({
                "ts_ms": now_ms(),
                "event_type": "ENGINE_OPEN_FAILED",
                "session_id": self.session_id,
                "generation": handle.generation,
                "message": str(e),
            })
            await self._send(Error(code="engine_open_failed", detail=str(e)))
            if self.state is not LifecycleState.CLOSED:
                self._transition(LifecycleState.RESTARTING, cause="engine_open_failed")
            return

        # close() stops whatever is stored here once it gets the lock
        self._handle = handle
        if self.state is LifecycleState.CLOSED:
            return

        # A newer reference is already waiting; stay RESTARTING for it.
        # ACTIVE before info: audio sent after the client sees info is routed.
        if self._pending_restarts == 0:
            self._transition(LifecycleState.ACTIVE, cause="engine_opened")

        await self._send(Info(reference=self.reference_text))

    # ------------------------------------------------------------------
    # Engine events
    # ------------------------------------------------------------------

    def _enqueue_engine_event(self, generation: int, event: EngineEvent) -> None:
        if self.state is LifecycleState.CLOSED:
            return
        self._events.put_nowait((generation, event))

    async def _pump_events(self) -> None:
        while True:
            generation, event = await self._events.get()
            msg = self._accept_engine_event(generation, event)
            if msg is None:
                log_event({
                    "ts_ms": now_ms(),
                    "event_type": "ENGINE_EVENT_DISCARDED",
                    "session_id": self.session_id,
                    "generation": generation,
                    "current_generation": self._handle.generation if self._handle else None,
                    "lifecycle_state": self.state.value,
                    "engine_event": type(event).__name__,
                })
                continue
            await self._send(msg)

    def _accept_engine_event(self, generation: int, event: EngineEvent) -> ControlMessage | None:
        handle = self._handle
        if handle is None or generation != handle.generation:
            return None
        if self.state is LifecycleState.CLOSED:
            return None

        if isinstance(event, EngineFailure):
            log_event({
                "ts_ms": now_ms(),
                "event_type": "ENGINE_ERROR",
                "session_id": self.session_id,
                "generation": generation,
                "reason": event.reason,
                "detail": event.detail,
            })
            return Error(code="engine_error", detail=f"{event.reason}: {event.detail}")

        if self.state is not LifecycleState.ACTIVE:
            return None

        if isinstance(event, EnginePartial):
            return Partial(text=event.text)

        if isinstance(event, EngineRecognized):
            return Final(
                text=event.text,
                accuracy=event.accuracy,
                fluency=event.fluency,
                completeness=event.completeness,
            )

        return None

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _send(self, msg: ControlMessage) -> None:
        if self.state is LifecycleState.CLOSED:
            return
        await self._connection.send_control(msg)

    def _transition(self, dst: LifecycleState, *, cause: str) -> None:
        src = self.state
        check_transition(src, dst)
        self.state = dst
        if src is dst:
            return
        log_event({
            "ts_ms": now_ms(),
            "event_type": "LIFECYCLE_TRANSITION",
            "session_id": self.session_id,
            "from": src.value,
            "to": dst.value,
            "cause": cause,
            "generation": self._generation,
        })

    def _log_cleanup_error(self, resource: str, exc: Exception) -> None:
        log_event({
            "ts_ms": now_ms(),
            "event_type": "CLEANUP_ERROR",
            "session_id": self.session_id,
            "resource": resource,
            "exception": type(exc).__name__,
            "message": str(exc),
        })
