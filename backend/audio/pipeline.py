"""
Microphone block -> wire AudioFrame transform.

capture block (float, device rate) -> resample_block -> float32_to_pcm16le
-> AudioFrame (PCM16 LE mono @ 16kHz)

One call produces exactly one frame. No buffering or coalescing across
calls; the only per-instance state is the outbound sequence counter.
"""

from __future__ import annotations

import numpy.typing as npt

from audio.frames import AudioFrame
from audio.pcm import float32_to_pcm16le
from audio.resample import resample_block
from constants import AUDIO_SAMPLE_RATE_HZ
from observability.logger import now_ms


class AudioTransformPipeline:
    """
    Stateless-per-block transform from capture samples to wire frames.

    sequence numbers are local and monotonic; they exist so callers
    and tests can assert delivery order.
    """

    def __init__(
        self,
        *,
        source_rate: int,
        target_rate: int = AUDIO_SAMPLE_RATE_HZ,
    ) -> None:
        if source_rate <= 0:
            raise ValueError("source_rate must be > 0")
        if target_rate <= 0:
            raise ValueError("target_rate must be > 0")

        self.source_rate = source_rate
        self.target_rate = target_rate
        self._next_seq = 1

    def transform(self, block: npt.ArrayLike) -> AudioFrame:
        """Resample and quantize one capture block into one AudioFrame."""
        resampled = resample_block(block, self.source_rate, self.target_rate)
        frame = AudioFrame(
            sequence_num=self._next_seq,
            pcm_bytes=float32_to_pcm16le(resampled),
            ts_ms=now_ms(),
        )
        self._next_seq += 1
        return frame
