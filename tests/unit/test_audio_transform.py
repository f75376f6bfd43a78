# pylint: disable=missing-module-docstring,missing-function-docstring

import numpy as np
import pytest

from audio.pcm import float32_to_pcm16le, pcm16le_to_float32
from audio.pipeline import AudioTransformPipeline
from audio.resample import resample_block


# ---------------------------------------------------------------------
# resample_block
# ---------------------------------------------------------------------

def test_resample_same_rate_is_identity():
    block = np.array([0.1, -0.2, 0.3, 0.0], dtype=np.float32)

    out = resample_block(block, 16000, 16000)

    assert np.array_equal(out, block)


def test_resample_same_rate_keeps_float64_exactly():
    block = np.array([0.1, -1e-9, 0.123456789012], dtype=np.float64)

    out = resample_block(block, 48000, 48000)

    assert out.dtype == np.float64
    assert np.array_equal(out, block)


def test_resample_48k_averages_groups_of_three():
    block = np.array([0.0, 0.3, 0.6, 1.0, 1.0, 1.0, -0.3, -0.3, 0.0], dtype=np.float32)

    out = resample_block(block, 48000, 16000)

    assert out.dtype == np.float32
    assert out.shape == (3,)
    assert np.allclose(out, [0.3, 1.0, -0.2], atol=1e-6)


def test_resample_output_length_rounds():
    # 4096 samples @ 44.1kHz -> round(4096 / 2.75625) = 1486
    block = np.zeros(4096, dtype=np.float32)

    out = resample_block(block, 44100, 16000)

    assert out.shape == (1486,)


def test_resample_upsampling_leaves_empty_windows_zero():
    # ratio 0.5: windows alternate between one sample and none
    block = np.array([0.5, -0.5], dtype=np.float32)

    out = resample_block(block, 8000, 16000)

    assert out.shape == (4,)
    assert out[0] == pytest.approx(0.5)
    assert out[1] == 0.0
    assert out[2] == pytest.approx(-0.5)
    assert out[3] == 0.0


def test_resample_empty_block():
    assert resample_block(np.zeros(0, dtype=np.float32), 48000, 16000).shape == (0,)


@pytest.mark.parametrize("source, target", [(0, 16000), (48000, 0), (-1, 16000)])
def test_resample_rejects_bad_rates(source: int, target: int):
    with pytest.raises(ValueError):
        resample_block(np.zeros(4, dtype=np.float32), source, target)


# ---------------------------------------------------------------------
# PCM16 quantization
# ---------------------------------------------------------------------

def test_quantize_clips_and_scales_asymmetrically():
    pcm = float32_to_pcm16le(np.array([1.5, 1.0, 0.0, -1.0, -2.0], dtype=np.float32))

    values = np.frombuffer(pcm, dtype="<i2").tolist()

    assert values == [32767, 32767, 0, -32768, -32768]


def test_quantize_rounds_to_nearest():
    pcm = float32_to_pcm16le(np.array([0.5, -0.5], dtype=np.float32))

    values = np.frombuffer(pcm, dtype="<i2").tolist()

    # 0.5 * 32767 = 16383.5 -> 16384 (round half to even); -0.5 * 32768 = -16384
    assert values == [16384, -16384]


def test_quantize_output_is_two_bytes_per_sample_little_endian():
    pcm = float32_to_pcm16le(np.full(7, 1.0, dtype=np.float32))

    assert len(pcm) == 14
    assert pcm[:2] == b"\xff\x7f"


def test_dequantize_recovers_samples_within_one_step():
    samples = np.linspace(-1.0, 1.0, 101, dtype=np.float32)

    recovered = pcm16le_to_float32(float32_to_pcm16le(samples))

    assert np.max(np.abs(recovered - samples)) <= 1.0 / 32767


def test_dequantize_drops_trailing_odd_byte():
    assert pcm16le_to_float32(b"\x00\x00\x01").shape == (1,)


# ---------------------------------------------------------------------
# AudioTransformPipeline
# ---------------------------------------------------------------------

def test_pipeline_frames_are_pcm16_at_16k_with_rising_sequence():
    pipeline = AudioTransformPipeline(source_rate=48000)

    frames = [pipeline.transform(np.zeros(4800, dtype=np.float32)) for _ in range(3)]

    assert [f.sequence_num for f in frames] == [1, 2, 3]
    for frame in frames:
        assert len(frame.pcm_bytes) == 1600 * 2
        assert frame.sample_count == 1600
        assert frame.duration_s == pytest.approx(0.1)


def test_pipeline_passthrough_at_native_rate():
    pipeline = AudioTransformPipeline(source_rate=16000)

    frame = pipeline.transform(np.array([0.0, 1.0], dtype=np.float32))

    assert frame.pcm_bytes == b"\x00\x00\xff\x7f"


def test_pipeline_rejects_bad_source_rate():
    with pytest.raises(ValueError):
        AudioTransformPipeline(source_rate=0)
