# pylint: disable=missing-module-docstring,missing-function-docstring

import pytest

from config import AppConfig
from constants import DEFAULT_REFERENCE_TEXT, SERVER_DEFAULT_PORT
from session.lifecycle import InvalidTransition, LifecycleState, check_transition


@pytest.mark.parametrize(
    "src, dst",
    [
        (LifecycleState.UNINITIALIZED, LifecycleState.ACTIVE),
        (LifecycleState.ACTIVE, LifecycleState.RESTARTING),
        (LifecycleState.RESTARTING, LifecycleState.ACTIVE),
        (LifecycleState.RESTARTING, LifecycleState.RESTARTING),
        (LifecycleState.ACTIVE, LifecycleState.CLOSED),
        (LifecycleState.UNINITIALIZED, LifecycleState.CLOSED),
    ],
)
def test_allowed_transitions(src: LifecycleState, dst: LifecycleState):
    check_transition(src, dst)


@pytest.mark.parametrize(
    "src, dst",
    [
        (LifecycleState.CLOSED, LifecycleState.ACTIVE),
        (LifecycleState.CLOSED, LifecycleState.CLOSED),
        (LifecycleState.ACTIVE, LifecycleState.UNINITIALIZED),
        (LifecycleState.ACTIVE, LifecycleState.ACTIVE),
    ],
)
def test_rejected_transitions(src: LifecycleState, dst: LifecycleState):
    with pytest.raises(InvalidTransition):
        check_transition(src, dst)


_ENV_VARS = (
    "ENV", "LOG_LEVEL", "HOST", "PORT", "ENABLE_JSON_LOGS", "ENGINE_PROVIDER",
    "SPEECH_KEY", "SPEECH_REGION", "SPEECH_LANGUAGE", "ENGINE_STOP_TIMEOUT_S",
    "DEFAULT_REFERENCE_TEXT", "LEGACY_BINARY_CONTROL",
)


def test_config_defaults(monkeypatch: pytest.MonkeyPatch):
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)

    config = AppConfig.load_from_env()

    assert config == AppConfig()
    assert config.port == SERVER_DEFAULT_PORT
    assert config.default_reference_text == DEFAULT_REFERENCE_TEXT
    assert config.speech_key is None
    assert config.enable_json_logs is True
    assert config.legacy_binary_control is False


def test_config_reads_environment(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("PORT", "8080")
    monkeypatch.setenv("SPEECH_KEY", "k")
    monkeypatch.setenv("SPEECH_REGION", "westeurope")
    monkeypatch.setenv("ENGINE_STOP_TIMEOUT_S", "1.5")
    monkeypatch.setenv("ENABLE_JSON_LOGS", "0")
    monkeypatch.setenv("LEGACY_BINARY_CONTROL", "1")
    monkeypatch.setenv("DEFAULT_REFERENCE_TEXT", "Good morning")

    config = AppConfig.load_from_env()

    assert config.port == 8080
    assert config.speech_key == "k"
    assert config.speech_region == "westeurope"
    assert config.engine_stop_timeout_s == 1.5
    assert config.enable_json_logs is False
    assert config.legacy_binary_control is True
    assert config.default_reference_text == "Good morning"


def test_config_rejects_bad_port(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("PORT", "not-a-port")

    with pytest.raises(ValueError):
        AppConfig.load_from_env()
