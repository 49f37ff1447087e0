"""
Backend package: Flask JSON API over the vault state machine.
"""

from .app import create_app

__all__ = ['create_app']
