"""
Route registration for the pronunciation streaming API.

Responsibilities:
- Define HTTP and WebSocket endpoints
- Wire gateway to WebSocket lifecycle
- Pull dependencies from app.state
"""

from __future__ import annotations

from fastapi import WebSocket, WebSocketDisconnect, FastAPI

from adapters.engine.base import RecognitionEngine
from observability.logger import log_event, now_ms
from session.connection import WebSocketConnection
from session.gateway import SessionGateway


def register_routes(app: FastAPI) -> None:
    """Register all routes on the FastAPI app."""
    @app.get("/health")
    async def health() -> dict[str, str]: # pyright: ignore[reportUnusedFunction]
        return {"status": "ok"}

    async def websocket_endpoint(ws: WebSocket) -> None:
        await ws.accept()

        # Engine is pulled from app state
        engine: RecognitionEngine = app.state.engine

        connection = WebSocketConnection(ws)
        gateway = SessionGateway(
            config=app.state.config,
            engine=engine,
        )

        try:
            await gateway.on_ws_connect(connection)

            while True:
                msg = await ws.receive()

                if msg["type"] == "websocket.disconnect":
                    raise WebSocketDisconnect(code=msg.get("code", 1000))

                if msg.get("text") is not None:
                    await gateway.on_text_message(msg["text"])

                elif msg.get("bytes") is not None:
                    await gateway.on_binary_message(msg["bytes"])

        except WebSocketDisconnect:
            await gateway.on_ws_disconnect(reason="client_disconnect")

        except Exception as exc:  # pylint: disable=broad-exception-caught
            log_event({
                "ts_ms": now_ms(),
                "event_type": "WS_FATAL_ERROR",
                "session_id": gateway.session.session_id if gateway.session else None,
                "exception": type(exc).__name__,
                "message": str(exc),
            })
            await gateway.on_ws_disconnect(reason="server_error")

    # Browser clients connect to ws://<host>/ directly
    app.add_api_websocket_route("/", websocket_endpoint)
    app.add_api_websocket_route("/ws", websocket_endpoint)
