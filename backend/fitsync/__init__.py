"""fitsync - Strava webhook ingestion and activity reconciliation service."""

__version__ = "0.1.0"
