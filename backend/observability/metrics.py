"""
Latency metrics for engine operations.

One measurement == one METRIC_TIMER event via observability.logger.
Nothing is aggregated in-process.

Durations use the monotonic clock; ts_ms stays wall-clock so metric lines
sort with the rest of the log.
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Iterator

from observability.logger import log_event, now_ms


@dataclass
class Timer:
    """
    A single in-flight measurement.

    stop() emits the metric the first time it is called and is a no-op
    afterwards, so a timer can never be reported twice.
    """
    name: str
    session_id: str | None = None
    generation: int | None = None
    details: dict[str, Any] = field(default_factory=dict)
    started_ns: int = field(default_factory=time.monotonic_ns)
    duration_ms: int | None = None

    def stop(self, outcome: str = "ok") -> int | None:
        if self.duration_ms is not None:
            return None

        self.duration_ms = (time.monotonic_ns() - self.started_ns) // 1_000_000
        log_event({
            "ts_ms": now_ms(),
            "event_type": "METRIC_TIMER",
            "metric": self.name,
            "value_ms": self.duration_ms,
            "outcome": outcome,
            "session_id": self.session_id,
            "generation": self.generation,
            "details": self.details,
        })
        return self.duration_ms


@contextmanager
def timed(
    name: str,
    *,
    session_id: str | None = None,
    generation: int | None = None,
) -> Iterator[Timer]:
    """
    Time the enclosed block.

    The metric is emitted exactly once, also when the block raises or is
    cancelled; outcome is then the exception's class name. The yielded
    Timer accepts extra details before the block ends.

    Usage:
        with timed("engine_open_latency", session_id=sid, generation=gen):
            session = await engine.open(reference_text, emit)
    """
    timer = Timer(name=name, session_id=session_id, generation=generation)
    try:
        yield timer
    except BaseException as e:
        timer.stop(outcome=type(e).__name__)
        raise
    else:
        timer.stop()
