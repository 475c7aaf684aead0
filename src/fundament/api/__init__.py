"""
Fundament REST API package.

A small FastAPI application exposing the cached values and source status of a
Fundament engine.
"""

from .server import create_app  # noqa: F401
