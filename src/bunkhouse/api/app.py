"""ASGI entry point: uvicorn bunkhouse.api.app:app"""

from .factory import create_app

app = create_app()
