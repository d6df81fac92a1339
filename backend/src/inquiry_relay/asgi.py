"""ASGI entry point: uvicorn inquiry_relay.asgi:app"""

from .main import create_app

app = create_app()
