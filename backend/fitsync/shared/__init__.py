from .repository import BaseRepository

__all__ = ["BaseRepository"]
