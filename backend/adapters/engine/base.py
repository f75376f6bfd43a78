"""
Recognition engine adapter contract.

This module defines the *interface only*: no session lifecycle, no
transport, no scoring logic lives here.

Key invariants:
- open(reference_text, emit) binds one engine session to one reference text
  and one append-only PCM16 input stream.
- The engine session reports results by calling `emit` with EngineEvent
  values, always on the event loop thread that called open(). Adapters
  whose SDK calls back on its own threads hop with call_soon_threadsafe.
- After stop() returns, the engine session must not call `emit` again and
  all of its resources are released.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Union


# ---------------------------------------------------------------------
# Engine events
# ---------------------------------------------------------------------

@dataclass(frozen=True)
class EnginePartial:
    """Incremental hypothesis; may be superseded."""
    text: str


@dataclass(frozen=True)
class EngineRecognized:
    """Settled, scored result for one utterance."""
    text: str
    accuracy: float
    fluency: float
    completeness: float


@dataclass(frozen=True)
class EngineFailure:
    """Non-recoverable error reported by the engine for this session."""
    reason: str
    detail: str


EngineEvent = Union[EnginePartial, EngineRecognized, EngineFailure]
EmitFn = Callable[[EngineEvent], None]


class EngineError(Exception):
    """Raised by open() when an engine session cannot be created."""


# ---------------------------------------------------------------------
# Contract
# ---------------------------------------------------------------------

class EngineSession(ABC):
    """
    One live binding between a reference text, an audio input stream,
    and the engine's recognition state.
    """

    @abstractmethod
    def write(self, pcm_bytes: bytes) -> None:
        """
        Append PCM16 LE mono 16kHz audio to the input stream.

        Must not block. Writes after stop() are ignored.
        """
        raise NotImplementedError

    @abstractmethod
    async def stop(self) -> None:
        """
        Stop recognition, close the input stream, release resources.

        Contract:
        - No events are emitted once stop() has returned.
        - stop() MUST be idempotent.
        """
        raise NotImplementedError


class RecognitionEngine(ABC):
    """Factory for engine sessions. One instance is shared per process."""

    @abstractmethod
    async def open(self, reference_text: str, emit: EmitFn) -> EngineSession:
        """
        Start a new engine session assessing speech against reference_text.

        Raises:
            EngineError if the session cannot be started.
        """
        raise NotImplementedError
