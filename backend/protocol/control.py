# backend/protocol/control.py
"""
JSON control messages carried as text on the duplex channel.

Client → Server:
    {"type": "setReference", "text": "<string>"}

Server → Client:
    {"type": "info", "reference": "<string>"}
    {"type": "partial", "text": "<string>"}
    {"type": "final", "text": "<string>", "accuracy": n, "fluency": n, "completeness": n}
    {"type": "error", "code": "<string>", "detail": "<string>"}

Messages are self-contained. There are no sequence numbers; ordering
comes from the transport's in-order delivery.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Union


class ControlType(str, Enum):
    """Discriminator values for the `type` field."""
    SET_REFERENCE = "setReference"
    INFO = "info"
    PARTIAL = "partial"
    FINAL = "final"
    ERROR = "error"


# -------------------------
# Exceptions
# -------------------------

class ControlMessageError(Exception):
    """Raised when text is not a well-formed control message."""


class UnknownControlType(ControlMessageError):
    """Raised when the `type` discriminator is not recognised."""

    def __init__(self, msg_type: Any) -> None:
        super().__init__(f"Unknown control message type: {msg_type!r}")
        self.msg_type = msg_type


# -------------------------
# Message variants
# -------------------------

@dataclass(frozen=True)
class SetReference:
    text: str

    def to_dict(self) -> dict[str, Any]:
        return {"type": ControlType.SET_REFERENCE.value, "text": self.text}


@dataclass(frozen=True)
class Info:
    reference: str

    def to_dict(self) -> dict[str, Any]:
        return {"type": ControlType.INFO.value, "reference": self.reference}


@dataclass(frozen=True)
class Partial:
    text: str

    def to_dict(self) -> dict[str, Any]:
        return {"type": ControlType.PARTIAL.value, "text": self.text}


@dataclass(frozen=True)
class Final:
    """Settled, scored result for one utterance. Scores are 0-100."""
    text: str
    accuracy: float
    fluency: float
    completeness: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": ControlType.FINAL.value,
            "text": self.text,
            "accuracy": self.accuracy,
            "fluency": self.fluency,
            "completeness": self.completeness,
        }


@dataclass(frozen=True)
class Error:
    code: str
    detail: str

    def to_dict(self) -> dict[str, Any]:
        return {"type": ControlType.ERROR.value, "code": self.code, "detail": self.detail}


ControlMessage = Union[SetReference, Info, Partial, Final, Error]


# -------------------------
# Codec
# -------------------------

def encode_control(msg: ControlMessage) -> str:
    """Serialize a control message to its wire text."""
    return json.dumps(msg.to_dict(), ensure_ascii=False, separators=(",", ":"))


def _require_str(data: dict[str, Any], key: str, *, default: str | None = None) -> str:
    value = data.get(key, default)
    if not isinstance(value, str):
        raise ControlMessageError(f"Field {key!r} must be a string, got {type(value).__name__}")
    return value


def _require_score(data: dict[str, Any], key: str) -> float:
    value = data.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ControlMessageError(f"Field {key!r} must be a number")
    return float(value)


def decode_control(payload: str | bytes) -> ControlMessage:
    """
    Parse wire text into a control message.

    Raises:
        ControlMessageError if the payload is not a JSON object with a
        string `type` and the fields that type requires.
        UnknownControlType if `type` is a string but not a known variant.
    """
    try:
        data = json.loads(payload)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ControlMessageError(f"Not JSON: {e}") from e

    if not isinstance(data, dict):
        raise ControlMessageError("Control message must be a JSON object")

    msg_type = data.get("type")
    if not isinstance(msg_type, str):
        raise ControlMessageError("Control message has no string 'type'")

    if msg_type == ControlType.SET_REFERENCE.value:
        # Missing or null text is allowed; the session keeps its current reference
        if data.get("text") is None:
            return SetReference(text="")
        return SetReference(text=_require_str(data, "text"))

    if msg_type == ControlType.INFO.value:
        return Info(reference=_require_str(data, "reference"))

    if msg_type == ControlType.PARTIAL.value:
        return Partial(text=_require_str(data, "text"))

    if msg_type == ControlType.FINAL.value:
        return Final(
            text=_require_str(data, "text"),
            accuracy=_require_score(data, "accuracy"),
            fluency=_require_score(data, "fluency"),
            completeness=_require_score(data, "completeness"),
        )

    if msg_type == ControlType.ERROR.value:
        return Error(
            code=_require_str(data, "code", default="error"),
            detail=_require_str(data, "detail", default=""),
        )

    raise UnknownControlType(msg_type)
