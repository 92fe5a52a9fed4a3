"""
Activity tracking module.

Usage:
    from fitsync.features.tracking import ProgressTracking, ProgressTrackingRepository
"""

from .models import ProgressTracking
from .repository import ProgressTrackingRepository

__all__ = [
    "ProgressTracking",
    "ProgressTrackingRepository",
]
