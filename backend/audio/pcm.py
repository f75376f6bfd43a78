"""PCM conversion utilities."""
import numpy as np
import numpy.typing as npt

from constants import PCM16_NEGATIVE_SCALE, PCM16_POSITIVE_SCALE


def float32_to_pcm16le(samples: npt.ArrayLike) -> bytes:
    """
    Quantize float samples to PCM16 little-endian mono bytes.

    Samples are clipped to [-1.0, 1.0]; negatives are scaled by 32768 and
    non-negatives by 32767, then rounded to the nearest integer.
    Output length is exactly 2 * len(samples).
    """
    audio = np.clip(np.asarray(samples, dtype=np.float64), -1.0, 1.0)
    scaled = np.where(
        audio < 0,
        audio * PCM16_NEGATIVE_SCALE,
        audio * PCM16_POSITIVE_SCALE,
    )
    return np.rint(scaled).astype("<i2").tobytes()


def pcm16le_to_float32(pcm_bytes: bytes) -> np.ndarray:
    """
    Convert PCM16 little-endian mono bytes to float32 in [-1.0, 1.0].

    Inverse of float32_to_pcm16le: uses the same asymmetric scaling.
    No resampling. No channel mixing.
    """
    if len(pcm_bytes) % 2 != 0:
        # Truncated sample; caller should treat as malformed frame upstream.
        pcm_bytes = pcm_bytes[: len(pcm_bytes) - 1]

    audio_i16 = np.frombuffer(pcm_bytes, dtype="<i2")  # little-endian int16
    audio_f64 = audio_i16.astype(np.float64)
    audio_f64 = np.where(
        audio_f64 < 0,
        audio_f64 / PCM16_NEGATIVE_SCALE,
        audio_f64 / PCM16_POSITIVE_SCALE,
    )
    return audio_f64.astype(np.float32)
