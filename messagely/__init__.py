"""Messagely: a small messaging directory service.

Users register and authenticate, then exchange short text messages
addressed by username.
"""

from .config import Settings
from .main import create_app

__all__ = ["Settings", "create_app"]
