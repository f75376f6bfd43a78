"""
Azure Speech pronunciation-assessment engine adapter.

Per engine session:
- PushAudioInputStream (PCM16 LE mono 16kHz) as the audio input
- SpeechRecognizer in continuous mode
- PronunciationAssessmentConfig bound to the reference text
  (hundred-mark grading, phoneme granularity, miscue detection)

Event mapping:
- recognizing                              -> EnginePartial(text)
- recognized (RecognizedSpeech only)       -> EngineRecognized(text, scores)
- canceled (CancellationReason.Error)      -> EngineFailure

SDK callbacks fire on SDK worker threads; events hop onto the event loop
with call_soon_threadsafe and are gated on the session's stopped flag,
so nothing is emitted once stop() has begun.
"""

from __future__ import annotations

import asyncio
from typing import Any

import azure.cognitiveservices.speech as speechsdk

from adapters.engine.base import (
    EmitFn,
    EngineError,
    EngineEvent,
    EngineFailure,
    EnginePartial,
    EngineRecognized,
    EngineSession,
    RecognitionEngine,
)
from constants import (
    AUDIO_BITS_PER_SAMPLE,
    AUDIO_CHANNELS,
    AUDIO_SAMPLE_RATE_HZ,
    RECOGNITION_LANGUAGE,
)
from observability.logger import log_event, now_ms


class AzurePronunciationSession(EngineSession):
    """
    One Azure recognizer + push stream bound to one reference text.

    Construct, then await start(). stop() is idempotent.
    """

    def __init__(
        self,
        *,
        speech_config: speechsdk.SpeechConfig,
        reference_text: str,
        emit: EmitFn,
        loop: asyncio.AbstractEventLoop,
    ) -> None:
        self._emit = emit
        self._loop = loop
        self._stopped = False

        stream_format = speechsdk.audio.AudioStreamFormat(
            samples_per_second=AUDIO_SAMPLE_RATE_HZ,
            bits_per_sample=AUDIO_BITS_PER_SAMPLE,
            channels=AUDIO_CHANNELS,
        )
        self._push_stream = speechsdk.audio.PushAudioInputStream(stream_format=stream_format)
        audio_config = speechsdk.audio.AudioConfig(stream=self._push_stream)

        self._recognizer = speechsdk.SpeechRecognizer(
            speech_config=speech_config,
            audio_config=audio_config,
        )

        pronunciation_config = speechsdk.PronunciationAssessmentConfig(
            reference_text=reference_text,
            grading_system=speechsdk.PronunciationAssessmentGradingSystem.HundredMark,
            granularity=speechsdk.PronunciationAssessmentGranularity.Phoneme,
            enable_miscue=True,
        )
        pronunciation_config.apply_to(self._recognizer)

        self._recognizer.recognizing.connect(self._on_recognizing)
        self._recognizer.recognized.connect(self._on_recognized)
        self._recognizer.canceled.connect(self._on_canceled)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def start(self) -> None:
        await asyncio.to_thread(
            lambda: self._recognizer.start_continuous_recognition_async().get()
        )

    def write(self, pcm_bytes: bytes) -> None:
        if self._stopped:
            return
        self._push_stream.write(pcm_bytes)

    async def stop(self) -> None:
        if self._stopped:
            return
        self._stopped = True

        # Unsubscribe first so a slow stop cannot leak late callbacks
        for signal in (
            self._recognizer.recognizing,
            self._recognizer.recognized,
            self._recognizer.canceled,
        ):
            try:
                signal.disconnect_all()
            except Exception as e:  # pylint: disable=broad-exception-caught
                _log_cleanup_error("disconnect_callbacks", e)

        # The input stream is closed even if the caller times out the stop
        try:
            await asyncio.to_thread(
                lambda: self._recognizer.stop_continuous_recognition_async().get()
            )
        except Exception as e:  # pylint: disable=broad-exception-caught
            _log_cleanup_error("stop_recognition", e)
        finally:
            try:
                self._push_stream.close()
            except Exception as e:  # pylint: disable=broad-exception-caught
                _log_cleanup_error("close_push_stream", e)

    # -------------------------------------------------------------------------
    # SDK callbacks (SDK threads)
    # -------------------------------------------------------------------------

    def _post(self, event: EngineEvent) -> None:
        if self._stopped:
            return
        self._loop.call_soon_threadsafe(self._deliver, event)

    def _deliver(self, event: EngineEvent) -> None:
        # Re-check on the loop thread: stop() may have started after _post
        if self._stopped:
            return
        self._emit(event)

    def _on_recognizing(self, evt: Any) -> None:
        self._post(EnginePartial(text=evt.result.text))

    def _on_recognized(self, evt: Any) -> None:
        result = evt.result
        if result.reason != speechsdk.ResultReason.RecognizedSpeech:
            return
        scores = speechsdk.PronunciationAssessmentResult(result)
        self._post(
            EngineRecognized(
                text=result.text,
                accuracy=scores.accuracy_score,
                fluency=scores.fluency_score,
                completeness=scores.completeness_score,
            )
        )

    def _on_canceled(self, evt: Any) -> None:
        details = evt.cancellation_details
        if details.reason != speechsdk.CancellationReason.Error:
            return
        self._post(
            EngineFailure(
                reason=str(details.code),
                detail=details.error_details or "",
            )
        )


class AzurePronunciationEngine(RecognitionEngine):
    """
    Azure-backed RecognitionEngine.

    Credentials are supplied once at startup and shared by all sessions.
    """

    def __init__(
        self,
        *,
        speech_key: str,
        speech_region: str,
        language: str = RECOGNITION_LANGUAGE,
    ) -> None:
        self._speech_key = speech_key
        self._speech_region = speech_region
        self._language = language

    def _build_speech_config(self) -> speechsdk.SpeechConfig:
        speech_config = speechsdk.SpeechConfig(
            subscription=self._speech_key,
            region=self._speech_region,
        )
        speech_config.speech_recognition_language = self._language
        return speech_config

    async def open(self, reference_text: str, emit: EmitFn) -> EngineSession:
        loop = asyncio.get_running_loop()
        try:
            session = AzurePronunciationSession(
                speech_config=self._build_speech_config(),
                reference_text=reference_text,
                emit=emit,
                loop=loop,
            )
        except Exception as e:  # pylint: disable=broad-exception-caught
            raise EngineError(f"azure_session_init_failed: {e!r}") from e

        try:
            await session.start()
        except Exception as e:  # pylint: disable=broad-exception-caught
            await session.stop()
            raise EngineError(f"azure_start_failed: {e!r}") from e

        return session


def _log_cleanup_error(step: str, exc: Exception) -> None:
    log_event({
        "ts_ms": now_ms(),
        "event_type": "CLEANUP_ERROR",
        "resource": "azure_engine_session",
        "step": step,
        "exception": type(exc).__name__,
        "message": str(exc),
    })
