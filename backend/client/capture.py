"""
Microphone capture session.

Idle -> Capturing -> Idle. One instance owns one input stream; nothing
lives at module level.

PortAudio calls the stream callback on its own thread. Each block is
copied and handed to the event loop, where it goes through the
AudioTransformPipeline and out to on_frame as exactly one AudioFrame.
"""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import Any, Callable

import numpy as np

from audio.frames import AudioFrame
from audio.pipeline import AudioTransformPipeline
from constants import AUDIO_CHANNELS, CAPTURE_BLOCK_SIZE, CAPTURE_DTYPE
from observability.logger import log_event, now_ms


FrameSink = Callable[[AudioFrame], Any]
StreamFactory = Callable[..., Any]


class CaptureState(Enum):
    IDLE = "IDLE"
    CAPTURING = "CAPTURING"


class CaptureError(Exception):
    """Microphone could not be opened (permission, missing device, ...)."""


def _sounddevice_stream(**kwargs: Any) -> Any:
    # Deferred so PortAudio is only loaded when a real device is used
    import sounddevice as sd  # pylint: disable=import-outside-toplevel
    return sd.InputStream(**kwargs)


def _device_sample_rate(device: int | str | None) -> int:
    import sounddevice as sd  # pylint: disable=import-outside-toplevel
    info = sd.query_devices(device, "input")
    return int(info["default_samplerate"])


class CaptureSession:
    """
    Explicit capture state for one microphone.

    on_frame is called on the event loop thread and must not block.
    """

    def __init__(
        self,
        *,
        on_frame: FrameSink,
        device: int | str | None = None,
        sample_rate: int | None = None,
        block_size: int = CAPTURE_BLOCK_SIZE,
        stream_factory: StreamFactory = _sounddevice_stream,
    ) -> None:
        self._on_frame = on_frame
        self._device = device
        self._sample_rate = sample_rate
        self._block_size = block_size
        self._stream_factory = stream_factory

        self.state = CaptureState.IDLE
        self._stream: Any = None
        self._pipeline: AudioTransformPipeline | None = None
        self._loop: asyncio.AbstractEventLoop | None = None

    def start(self) -> None:
        """
        Open the microphone and begin emitting frames.

        No-op if already capturing. On failure the session stays IDLE
        and CaptureError is raised; there is no retry.
        """
        if self.state is CaptureState.CAPTURING:
            return

        self._loop = asyncio.get_running_loop()
        stream = None
        try:
            rate = self._sample_rate or _device_sample_rate(self._device)
            self._pipeline = AudioTransformPipeline(source_rate=rate)
            stream = self._stream_factory(
                samplerate=rate,
                blocksize=self._block_size,
                device=self._device,
                channels=AUDIO_CHANNELS,
                dtype=CAPTURE_DTYPE,
                callback=self._callback,
            )
            stream.start()
        except Exception as e:  # pylint: disable=broad-exception-caught
            log_event({
                "ts_ms": now_ms(),
                "event_type": "CAPTURE_ERROR",
                "device": self._device,
                "exception": type(e).__name__,
                "message": str(e),
            })
            if stream is not None:
                _close_quietly(stream)
            self._pipeline = None
            raise CaptureError(str(e)) from e

        self._stream = stream
        self.state = CaptureState.CAPTURING
        log_event({
            "ts_ms": now_ms(),
            "event_type": "CAPTURE_STARTED",
            "device": self._device,
            "sample_rate": rate,
            "block_size": self._block_size,
        })

    def stop(self) -> list[Exception]:
        """
        Stop capture and release the device.

        Every teardown step runs even if an earlier one fails. Returns
        the errors that were logged (empty on a clean stop).
        """
        if self.state is CaptureState.IDLE:
            return []
        self.state = CaptureState.IDLE

        errors: list[Exception] = []
        stream = self._stream
        self._stream = None

        if stream is not None:
            for step in ("stop", "close"):
                try:
                    getattr(stream, step)()
                except Exception as e:  # pylint: disable=broad-exception-caught
                    errors.append(e)
                    log_event({
                        "ts_ms": now_ms(),
                        "event_type": "CLEANUP_ERROR",
                        "resource": "input_stream",
                        "step": step,
                        "exception": type(e).__name__,
                        "message": str(e),
                    })

        self._pipeline = None
        log_event({
            "ts_ms": now_ms(),
            "event_type": "CAPTURE_STOPPED",
            "cleanup_errors": len(errors),
        })
        return errors

    # -------------------------------------------------------------------------
    # Audio path
    # -------------------------------------------------------------------------

    def _callback(self, indata: np.ndarray, frames: int, time_info: Any, status: Any) -> None:  # pylint: disable=unused-argument
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        try:
            loop.call_soon_threadsafe(self._on_block, indata[:, 0].copy(), str(status) if status else "")
        except RuntimeError:
            # Loop shut down between the check and the call
            return

    def _on_block(self, block: np.ndarray, status: str) -> None:
        if self.state is not CaptureState.CAPTURING or self._pipeline is None:
            return
        if status:
            log_event({"ts_ms": now_ms(), "event_type": "CAPTURE_STATUS", "status": status})
        self._on_frame(self._pipeline.transform(block))


def _close_quietly(stream: Any) -> None:
    try:
        stream.close()
    except Exception as e:  # pylint: disable=broad-exception-caught
        log_event({
            "ts_ms": now_ms(),
            "event_type": "CLEANUP_ERROR",
            "resource": "input_stream",
            "step": "close",
            "exception": type(e).__name__,
            "message": str(e),
        })
