"""HTTP API module."""

from .app import create_app, current_user_id

__all__ = ["create_app", "current_user_id"]
