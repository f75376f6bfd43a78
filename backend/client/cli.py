"""
Command-line microphone client.

    pronunciation-client --url ws://localhost:3000/ --reference "The quick brown fox"

Connects, waits up to 3s for the socket, optionally sets a reference text,
then streams the default microphone until Ctrl-C or --duration elapses.
Server results are printed as they arrive.
"""

from __future__ import annotations

import argparse
import asyncio
import sys

from client.capture import CaptureError, CaptureSession
from client.channel import ClientChannel
from constants import SERVER_DEFAULT_PORT, WS_OPEN_TIMEOUT_S
from observability import logger
from protocol.control import ControlMessage, Error, Final, Info, Partial


class ConsolePresenter:
    """Prints server messages; stands in for an on-screen UI."""

    def __init__(self, out=sys.stdout) -> None:
        self._out = out
        self.reference: str | None = None
        self.last_partial: str | None = None
        self.last_final: Final | None = None

    def handle(self, msg: ControlMessage) -> None:
        if isinstance(msg, Info):
            self.reference = msg.reference
            self.write(f"Reference: {msg.reference}")
        elif isinstance(msg, Partial):
            self.last_partial = msg.text
            self.write(f"... {msg.text}")
        elif isinstance(msg, Final):
            self.last_final = msg
            self.write(
                f"Text: {msg.text}\n"
                f"Accuracy: {msg.accuracy}\n"
                f"Fluency: {msg.fluency}\n"
                f"Completeness: {msg.completeness}"
            )
        elif isinstance(msg, Error):
            self.write(f"Server error [{msg.code}]: {msg.detail}")

    def write(self, line: str) -> None:
        self._out.write(line + "\n")
        self._out.flush()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Stream microphone audio for pronunciation assessment")
    parser.add_argument("--url", default=f"ws://localhost:{SERVER_DEFAULT_PORT}/")
    parser.add_argument("--reference", default=None, help="Reference text to assess against")
    parser.add_argument("--device", default=None, help="Input device index or name")
    parser.add_argument("--duration", type=float, default=None, help="Seconds to capture (default: until Ctrl-C)")
    parser.add_argument("--open-timeout", type=float, default=WS_OPEN_TIMEOUT_S)
    parser.add_argument("--quiet", action="store_true", help="Suppress JSONL logs")
    return parser


def _parse_device(value: str | None) -> int | str | None:
    if value is None:
        return None
    return int(value) if value.isdigit() else value


async def run(args: argparse.Namespace, presenter: ConsolePresenter) -> int:
    channel = ClientChannel(
        args.url,
        on_message=presenter.handle,
        open_timeout_s=args.open_timeout,
    )
    await channel.open()

    if args.reference:
        await channel.send_reference(args.reference)

    capture = CaptureSession(on_frame=channel.send_audio, device=_parse_device(args.device))
    try:
        capture.start()
    except CaptureError as e:
        presenter.write(f"Could not open microphone: {e}")
        await channel.close()
        return 1

    try:
        if args.duration is not None:
            await asyncio.sleep(args.duration)
        else:
            await asyncio.Event().wait()
    finally:
        capture.stop()
        await channel.close()

    return 0


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    if args.quiet:
        logger.set_enabled(False)

    try:
        return asyncio.run(run(args, ConsolePresenter()))
    except KeyboardInterrupt:
        return 0


if __name__ == "__main__":
    sys.exit(main())
