"""BandSync fan chat backend."""

from fanchat.main import app

__all__ = ["app"]
