"""Main entry point for the application: uvicorn main:app"""
from backend.main import create_app

app = create_app()

__all__ = ["app"]
