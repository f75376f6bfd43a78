# pylint: disable=missing-module-docstring,missing-function-docstring

import io

from client.cli import ConsolePresenter, build_parser
from protocol.control import Error, Final, Info, Partial


def test_presenter_tracks_reference_and_results():
    out = io.StringIO()
    presenter = ConsolePresenter(out)

    presenter.handle(Info(reference="Hello, how are you today?"))
    presenter.handle(Partial(text="hel"))
    presenter.handle(Final(text="hello", accuracy=95.2, fluency=88.0, completeness=100.0))
    presenter.handle(Error(code="engine_error", detail="boom"))

    assert presenter.reference == "Hello, how are you today?"
    assert presenter.last_partial == "hel"
    assert presenter.last_final == Final(text="hello", accuracy=95.2, fluency=88.0, completeness=100.0)

    text = out.getvalue()
    assert "Reference: Hello, how are you today?" in text
    assert "Accuracy: 95.2" in text
    assert "Fluency: 88.0" in text
    assert "Completeness: 100.0" in text
    assert "Server error [engine_error]: boom" in text


def test_parser_defaults():
    args = build_parser().parse_args([])

    assert args.url == "ws://localhost:3000/"
    assert args.reference is None
    assert args.open_timeout == 3.0
    assert args.quiet is False


def test_parser_overrides():
    args = build_parser().parse_args(
        ["--url", "ws://example:9000/ws", "--reference", "Good morning", "--duration", "2.5", "--quiet"]
    )

    assert args.url == "ws://example:9000/ws"
    assert args.reference == "Good morning"
    assert args.duration == 2.5
    assert args.quiet is True
