# pylint: disable=missing-module-docstring,missing-function-docstring,missing-class-docstring

from __future__ import annotations

import asyncio
import time
from typing import Callable

from adapters.engine.base import (
    EmitFn,
    EngineError,
    EngineEvent,
    EngineSession,
    RecognitionEngine,
)
from protocol.control import ControlMessage
from session.connection import ConnectionStatus


class FakeEngineSession(EngineSession):
    """Records writes/stops; emit() bypasses any stopped check on purpose."""

    def __init__(self, engine: FakeEngine, index: int, reference_text: str, emit: EmitFn) -> None:
        self.engine = engine
        self.index = index
        self.reference_text = reference_text
        self._emit = emit
        self.written: list[bytes] = []
        self.stop_calls = 0

    def write(self, pcm_bytes: bytes) -> None:
        self.written.append(pcm_bytes)
        if self.engine.on_write is not None:
            self.engine.on_write(self, pcm_bytes)

    async def stop(self) -> None:
        self.stop_calls += 1
        self.engine.calls.append(("stop", self.index))
        self.engine.active -= 1
        if self.engine.stop_delay_s:
            await asyncio.sleep(self.engine.stop_delay_s)
        if self.engine.stop_error is not None:
            raise self.engine.stop_error

    def emit(self, event: EngineEvent) -> None:
        self._emit(event)


class FakeEngine(RecognitionEngine):
    """
    Scriptable engine.

    gate:       if set, open() waits on it (lets tests hold a restart open)
    fail_opens: indexes of open() calls that raise EngineError
    on_write:   hook called for every write (e.g. to emit a result)
    """

    def __init__(
        self,
        *,
        fail_opens: set[int] | None = None,
        on_write: Callable[[FakeEngineSession, bytes], None] | None = None,
        stop_delay_s: float = 0.0,
        stop_error: Exception | None = None,
    ) -> None:
        self.sessions: list[FakeEngineSession] = []
        self.calls: list[tuple[str, int]] = []
        self.fail_opens = fail_opens or set()
        self.on_write = on_write
        self.stop_delay_s = stop_delay_s
        self.stop_error = stop_error
        self.gate: asyncio.Event | None = None
        self.active = 0
        self.max_active = 0
        self._open_count = 0

    @property
    def open_count(self) -> int:
        return self._open_count

    async def open(self, reference_text: str, emit: EmitFn) -> EngineSession:
        index = self._open_count
        self._open_count += 1
        self.calls.append(("open", index))

        if self.gate is not None:
            await self.gate.wait()

        if index in self.fail_opens:
            raise EngineError(f"open {index} refused")

        session = FakeEngineSession(self, index, reference_text, emit)
        self.sessions.append(session)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        return session


class FakeConnection:
    def __init__(self) -> None:
        self.status = ConnectionStatus.UP
        self.session_id: str | None = None
        self.sent: list[ControlMessage] = []
        self.rejected: list[ControlMessage] = []

    async def send_control(self, msg: ControlMessage) -> bool:
        if self.status is not ConnectionStatus.UP:
            self.rejected.append(msg)
            return False
        self.sent.append(msg)
        return True

    def mark_closed(self) -> None:
        self.status = ConnectionStatus.DOWN


async def wait_until(predicate: Callable[[], bool], timeout_s: float = 2.0) -> None:
    deadline = time.monotonic() + timeout_s
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.001)


async def settle(rounds: int = 20) -> None:
    for _ in range(rounds):
        await asyncio.sleep(0)


def wait_until_sync(predicate: Callable[[], bool], timeout_s: float = 2.0) -> None:
    deadline = time.monotonic() + timeout_s
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError("condition not met before timeout")
        time.sleep(0.005)
