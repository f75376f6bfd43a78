"""
Application configuration.

Responsibilities:
- Load deployment-specific configuration
- Read environment variables
- Provide a typed, immutable config object

Non-responsibilities:
- No session logic
- No protocol constants
- No runtime mutation
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from constants import (
    DEFAULT_REFERENCE_TEXT,
    ENGINE_PROVIDER_AZURE,
    ENGINE_STOP_TIMEOUT_S,
    RECOGNITION_LANGUAGE,
    SERVER_DEFAULT_HOST,
    SERVER_DEFAULT_PORT,
)


def _env_flag(name: str, default: str) -> bool:
    return os.environ.get(name, default) == "1"


@dataclass(frozen=True)
class AppConfig:
    """
    Immutable application configuration.

    Constructed once at process startup.
    Passed downward to the gateway and the engine adapter.
    """

    # ------------------------------------------------------------------
    # Environment
    # ------------------------------------------------------------------

    env: str = "dev"
    log_level: str = "INFO"
    host: str = SERVER_DEFAULT_HOST
    port: int = SERVER_DEFAULT_PORT

    # ------------------------------------------------------------------
    # Observability
    # ------------------------------------------------------------------

    enable_json_logs: bool = True

    # ------------------------------------------------------------------
    # Recognition engine
    # ------------------------------------------------------------------

    engine_provider: str = ENGINE_PROVIDER_AZURE
    speech_key: str | None = None
    speech_region: str | None = None
    speech_language: str = RECOGNITION_LANGUAGE
    engine_stop_timeout_s: float = ENGINE_STOP_TIMEOUT_S

    # ------------------------------------------------------------------
    # Session / protocol
    # ------------------------------------------------------------------

    default_reference_text: str = DEFAULT_REFERENCE_TEXT
    legacy_binary_control: bool = False

    # ------------------------------------------------------------------
    # Factory
    # ------------------------------------------------------------------

    @staticmethod
    def load_from_env() -> AppConfig:
        """
        Load configuration from environment variables.

        Raises:
            ValueError if a numeric variable cannot be parsed.
        """
        return AppConfig(
            env=os.environ.get("ENV", "dev"),
            log_level=os.environ.get("LOG_LEVEL", "INFO"),
            host=os.environ.get("HOST", SERVER_DEFAULT_HOST),
            port=int(os.environ.get("PORT", str(SERVER_DEFAULT_PORT))),

            enable_json_logs=_env_flag("ENABLE_JSON_LOGS", "1"),

            engine_provider=os.environ.get("ENGINE_PROVIDER", ENGINE_PROVIDER_AZURE),
            speech_key=os.environ.get("SPEECH_KEY"),
            speech_region=os.environ.get("SPEECH_REGION"),
            speech_language=os.environ.get("SPEECH_LANGUAGE", RECOGNITION_LANGUAGE),
            engine_stop_timeout_s=float(
                os.environ.get("ENGINE_STOP_TIMEOUT_S", str(ENGINE_STOP_TIMEOUT_S))
            ),

            default_reference_text=os.environ.get(
                "DEFAULT_REFERENCE_TEXT", DEFAULT_REFERENCE_TEXT
            ),
            legacy_binary_control=_env_flag("LEGACY_BINARY_CONTROL", "0"),
        )
