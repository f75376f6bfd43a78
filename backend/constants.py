"""
CONSTANTS
---------
Single source of truth for behavioral constants in the system.

Rules:
- If changing a value changes runtime behavior, it belongs here.
- No magic numbers elsewhere in the codebase.
- Other modules MUST import from this file.
"""

from __future__ import annotations

from typing import Final

# =============================================================================
# Wire audio format (PCM16 LE mono @ 16kHz)
# =============================================================================

AUDIO_SAMPLE_RATE_HZ: Final[int] = 16_000
AUDIO_CHANNELS: Final[int] = 1
AUDIO_SAMPLE_WIDTH_BYTES: Final[int] = 2  # PCM16 (signed 16-bit)
AUDIO_BITS_PER_SAMPLE: Final[int] = AUDIO_SAMPLE_WIDTH_BYTES * 8

# Asymmetric PCM16 scaling: negatives reach -32768, positives stop at 32767
PCM16_NEGATIVE_SCALE: Final[float] = 32768.0
PCM16_POSITIVE_SCALE: Final[float] = 32767.0

# =============================================================================
# Client capture
# =============================================================================

CAPTURE_BLOCK_SIZE: Final[int] = 4096  # frames per microphone callback
CAPTURE_DTYPE: Final[str] = "float32"

# Bound on waiting for the channel to open before capture proceeds anyway
WS_OPEN_TIMEOUT_S: Final[float] = 3.0

# Outbound audio frames held while the socket drains; overflow is dropped
CLIENT_SEND_QUEUE_MAX_FRAMES: Final[int] = 64

# =============================================================================
# Session lifecycle
# =============================================================================

DEFAULT_REFERENCE_TEXT: Final[str] = "Hello, how are you today?"
ENGINE_STOP_TIMEOUT_S: Final[float] = 5.0

# =============================================================================
# Recognition engine
# =============================================================================

RECOGNITION_LANGUAGE: Final[str] = "en-US"
ENGINE_PROVIDER_AZURE: Final[str] = "azure"

# =============================================================================
# Server
# =============================================================================

SERVER_DEFAULT_HOST: Final[str] = "0.0.0.0"
SERVER_DEFAULT_PORT: Final[int] = 3000
