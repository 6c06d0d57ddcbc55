"""
WebSocket server and event handling for the storyteller game.
"""

from .server import create_app

__all__ = ["create_app"]
