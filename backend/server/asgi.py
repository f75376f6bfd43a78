"""
ASGI entry point.

Used by uvicorn (see server.main). Loads .env before the app reads
SPEECH_KEY / SPEECH_REGION.
"""

from dotenv import load_dotenv

load_dotenv()

from server.app import create_app  # pylint: disable=wrong-import-position

app = create_app()
