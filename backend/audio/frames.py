"""
Audio frame primitives.

Pure data containers only.
No behavior, no queues, no timing logic.
"""

from __future__ import annotations
from dataclasses import dataclass

from constants import AUDIO_SAMPLE_RATE_HZ, AUDIO_SAMPLE_WIDTH_BYTES


@dataclass(frozen=True)
class AudioFrame:
    """
    Canonical audio frame carried on the duplex channel.

    sequence_num:
        Monotonic counter assigned by whoever produced or received the frame.
        Never sent on the wire. Used for ordering checks and logging only.

    pcm_bytes:
        Raw PCM16 little-endian mono audio at AUDIO_SAMPLE_RATE_HZ.
        Any whole number of samples; chunk boundaries carry no meaning.

    ts_ms:
        Wall-clock timestamp (milliseconds) when the frame was produced
        or received. Observability only.
    """
    sequence_num: int
    pcm_bytes: bytes
    ts_ms: int

    @property
    def sample_count(self) -> int:
        return len(self.pcm_bytes) // AUDIO_SAMPLE_WIDTH_BYTES

    @property
    def duration_s(self) -> float:
        return self.sample_count / AUDIO_SAMPLE_RATE_HZ
