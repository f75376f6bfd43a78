"""
FastAPI app factory.

Responsibilities:
- Create and configure FastAPI app
- Set up middleware
- Initialize shared resources (recognition engine)
- Register routes
"""

from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from adapters.engine.base import RecognitionEngine
from config import AppConfig
from constants import ENGINE_PROVIDER_AZURE
from observability import logger

from server.routes import register_routes


def create_app(
    *,
    config: AppConfig | None = None,
    engine: RecognitionEngine | None = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    config and engine default to the environment-configured ones; tests
    inject both.
    """
    if config is None:
        config = AppConfig.load_from_env()

    logger.set_enabled(config.enable_json_logs)

    app = FastAPI(title="Pronunciation Stream API")

    app.state.config = config

    # Middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # tighten later
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # One engine factory per process, shared by all sessions
    app.state.engine = engine if engine is not None else build_engine(config)

    # Routes
    register_routes(app)

    return app


def build_engine(config: AppConfig) -> RecognitionEngine:
    """Build the recognition engine selected by environment variables."""
    if config.engine_provider.lower() == ENGINE_PROVIDER_AZURE:
        if not config.speech_key or not config.speech_region:
            raise RuntimeError("SPEECH_KEY and SPEECH_REGION environment variables must be set")

        # Imported lazily so the SDK's native library loads only when used
        from adapters.engine.azure_speech import AzurePronunciationEngine  # pylint: disable=import-outside-toplevel

        return AzurePronunciationEngine(
            speech_key=config.speech_key,
            speech_region=config.speech_region,
            language=config.speech_language,
        )

    raise RuntimeError(f"Unknown ENGINE_PROVIDER: {config.engine_provider}")
