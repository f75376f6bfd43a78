"""
Development server entry point.

    pronunciation-server            # host/port/log level from the environment
    pronunciation-server --port 8000
"""

from __future__ import annotations

import argparse

import uvicorn
from dotenv import load_dotenv

from config import AppConfig


def main(argv: list[str] | None = None) -> None:
    load_dotenv()
    config = AppConfig.load_from_env()

    parser = argparse.ArgumentParser(description="Live pronunciation assessment server")
    parser.add_argument("--host", default=config.host)
    parser.add_argument("--port", type=int, default=config.port)
    parser.add_argument("--reload", action="store_true", help="Dev mode only")
    args = parser.parse_args(argv)

    uvicorn.run(
        "server.asgi:app",
        host=args.host,
        port=args.port,
        log_level=config.log_level.lower(),
        reload=args.reload,
    )


if __name__ == "__main__":
    main()
