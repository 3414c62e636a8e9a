import logging
import os

from dotenv import load_dotenv

load_dotenv()
logging.basicConfig(level=os.environ.get("LOG_LEVEL", "INFO").upper())

from drawguess.server import create_app  # noqa: E402

app, socketio = create_app()
