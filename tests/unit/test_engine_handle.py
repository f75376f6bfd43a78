# pylint: disable=missing-module-docstring,missing-function-docstring

import asyncio
from typing import Any

import pytest

import session.engine_handle as handle_mod
from adapters.engine.base import EngineError, EngineEvent, EnginePartial
from session.engine_handle import EngineHandle

from fakes import FakeEngine


def _handle(received: list[tuple[int, EngineEvent]], generation: int = 3) -> EngineHandle:
    return EngineHandle(
        generation=generation,
        reference_text="The quick brown fox",
        sink=lambda gen, event: received.append((gen, event)),
        session_id="sess_test",
    )


def test_events_are_tagged_with_generation():
    received: list[tuple[int, EngineEvent]] = []

    async def scenario():
        engine = FakeEngine()
        handle = _handle(received)
        await handle.open(engine)
        assert handle.is_open

        engine.sessions[0].emit(EnginePartial(text="qu"))
        handle.write(b"\x00\x00")
        assert engine.sessions[0].written == [b"\x00\x00"]
        assert engine.sessions[0].reference_text == "The quick brown fox"
        await handle.stop(timeout_s=1.0)

    asyncio.run(scenario())

    assert received == [(3, EnginePartial(text="qu"))]


def test_stop_unsubscribes_and_is_idempotent():
    received: list[tuple[int, EngineEvent]] = []

    async def scenario():
        engine = FakeEngine()
        handle = _handle(received)
        await handle.open(engine)

        await handle.stop(timeout_s=1.0)
        await handle.stop(timeout_s=1.0)
        engine.sessions[0].emit(EnginePartial(text="late"))
        handle.write(b"\x00\x00")

        assert engine.sessions[0].stop_calls == 1
        assert engine.sessions[0].written == []
        assert not handle.is_open

    asyncio.run(scenario())

    assert received == []


def test_open_failure_propagates():
    async def scenario():
        handle = _handle([])
        with pytest.raises(EngineError):
            await handle.open(FakeEngine(fail_opens={0}))
        assert not handle.is_open
        # Nothing to stop
        await handle.stop(timeout_s=1.0)

    asyncio.run(scenario())


def test_stop_timeout_is_bounded_and_logged(monkeypatch: pytest.MonkeyPatch):
    emitted: list[dict[str, Any]] = []
    monkeypatch.setattr(handle_mod, "log_event", emitted.append)

    async def scenario():
        handle = _handle([])
        await handle.open(FakeEngine(stop_delay_s=5.0))
        await asyncio.wait_for(handle.stop(timeout_s=0.01), timeout=1.0)

    asyncio.run(scenario())

    timeouts = [e for e in emitted if e["event_type"] == "ENGINE_STOP_TIMEOUT"]
    assert len(timeouts) == 1
    assert timeouts[0]["generation"] == 3
