"""HTTP API for the bet lifecycle."""

from .server import create_app

__all__ = ["create_app"]
