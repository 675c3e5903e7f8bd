"""ASGI entry point: ``uvicorn clubflow.main:app``."""
from clubflow.application import create_app

app = create_app()
