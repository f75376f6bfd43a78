"""
Block-local sample-rate conversion.

Box-filter decimation: each output sample is the mean of the input samples
that fall inside its window. No filter state is carried between calls, so
block boundaries are approximate.
"""

from __future__ import annotations

import numpy as np
import numpy.typing as npt

from constants import AUDIO_SAMPLE_RATE_HZ


def _round_half_up(values: npt.NDArray[np.float64]) -> npt.NDArray[np.int64]:
    return np.floor(values + 0.5).astype(np.int64)


def resample_block(
    block: npt.ArrayLike,
    source_rate: int,
    target_rate: int = AUDIO_SAMPLE_RATE_HZ,
) -> npt.NDArray[np.floating]:
    """
    Resample one block of float samples from source_rate to target_rate.

    - source_rate == target_rate: the block is returned unchanged, in its
      own dtype (no float32 rounding).
    - Otherwise ratio = source_rate / target_rate, output length is
      round(len(block) / ratio), and output[i] is the mean of
      block[round(i * ratio) : round((i + 1) * ratio)] clipped to the input,
      or 0.0 when that window is empty.

    Raises:
        ValueError if either rate is not positive.
    """
    if source_rate <= 0 or target_rate <= 0:
        raise ValueError(
            f"sample rates must be > 0 (source={source_rate}, target={target_rate})"
        )

    if source_rate == target_rate:
        return np.asarray(block)

    samples = np.asarray(block, dtype=np.float32)

    ratio = source_rate / target_rate
    n_in = samples.shape[0]
    n_out = int(_round_half_up(np.array([n_in / ratio]))[0])
    if n_out <= 0:
        return np.zeros(0, dtype=np.float32)

    bounds = _round_half_up(np.arange(n_out + 1, dtype=np.float64) * ratio)
    bounds = np.minimum(bounds, n_in)
    starts = bounds[:-1]
    ends = bounds[1:]

    # Prefix sums give every window total in one pass
    csum = np.concatenate(([0.0], np.cumsum(samples, dtype=np.float64)))
    counts = ends - starts
    totals = csum[ends] - csum[starts]

    out = np.zeros(n_out, dtype=np.float64)
    nonempty = counts > 0
    out[nonempty] = totals[nonempty] / counts[nonempty]
    return out.astype(np.float32)
