"""
User module.

Usage:
    from fitsync.features.users import User
"""

from .models import User

__all__ = ["User"]
