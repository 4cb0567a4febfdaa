"""
HTTP gateway for the matchmaking engine.
"""

from .app import create_app

__all__ = ['create_app']
