# backend/protocol/channel.py
"""
Inbound message discrimination for the duplex channel.

One WebSocket carries two logical message classes:
- control messages: JSON text (see protocol.control)
- audio: raw PCM16 LE mono @ 16kHz, any whole number of samples

The transport frame kind is the envelope:
- text frame   -> control message (never audio)
- binary frame -> audio

Legacy clients that send control JSON inside binary frames are supported
with sniff_binary=True: a binary payload that decodes as a control message
is treated as one, anything else is audio.

Usage example:

    try:
        inbound = classify_inbound(
            text=msg.get("text"),
            data=msg.get("bytes"),
            sequence_num=next_seq,
            ts_ms=now_ms(),
        )
    except ControlMessageError as e:
        log_event({"event_type": "CONTROL_DECODE_ERROR", "error": str(e)})
    except BinaryProtocolError as e:
        log_event({"event_type": "BINARY_DECODE_ERROR", "error": str(e)})
"""

from __future__ import annotations

from typing import Union

from audio.frames import AudioFrame
from constants import AUDIO_SAMPLE_WIDTH_BYTES
from protocol.control import ControlMessage, ControlMessageError, decode_control


# -------------------------
# Exceptions
# -------------------------

class BinaryProtocolError(Exception):
    """Base class for binary audio payload errors."""


class EmptyAudioPayload(BinaryProtocolError):
    """Raised when a binary frame carries no bytes at all."""


class InvalidFrameLength(BinaryProtocolError):
    """
    Raised when a binary payload is not a whole number of PCM16 samples.

    The frame is unsafe to forward to the engine and must be dropped.
    """


Inbound = Union[ControlMessage, AudioFrame]


# -------------------------
# Audio payloads
# -------------------------

def decode_audio_payload(payload: bytes, *, sequence_num: int, ts_ms: int) -> AudioFrame:
    """
    Validate a binary payload and wrap it as an AudioFrame.
    """
    if not payload:
        raise EmptyAudioPayload("Binary frame is empty")

    if len(payload) % AUDIO_SAMPLE_WIDTH_BYTES != 0:
        raise InvalidFrameLength(
            f"PCM length {len(payload)} is not a multiple of {AUDIO_SAMPLE_WIDTH_BYTES}"
        )

    return AudioFrame(
        sequence_num=sequence_num,
        pcm_bytes=bytes(payload),
        ts_ms=ts_ms,
    )


def _sniff_control(payload: bytes) -> ControlMessage | None:
    # Cheap prefilter: every control message is a JSON object
    if payload[:1] != b"{":
        return None
    try:
        return decode_control(payload.decode("utf-8"))
    except (UnicodeDecodeError, ControlMessageError):
        return None


# -------------------------
# Discrimination
# -------------------------

def classify_inbound(
    *,
    text: str | None = None,
    data: bytes | None = None,
    sequence_num: int,
    ts_ms: int,
    sniff_binary: bool = False,
) -> Inbound:
    """
    Decide whether an inbound transport message is control or audio.

    Exactly one of `text` / `data` is expected. `sequence_num` and `ts_ms`
    are only used when the result is an AudioFrame.

    Raises:
        ControlMessageError for a text frame that is not a valid control message.
        BinaryProtocolError for a binary frame that is not valid audio.
        ValueError if neither or both payload kinds are given.
    """
    if (text is None) == (data is None):
        raise ValueError("classify_inbound needs exactly one of text or data")

    if text is not None:
        return decode_control(text)

    assert data is not None
    if sniff_binary:
        sniffed = _sniff_control(data)
        if sniffed is not None:
            return sniffed

    return decode_audio_payload(data, sequence_num=sequence_num, ts_ms=ts_ms)
