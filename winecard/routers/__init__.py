"""API routers for WineCard."""

from winecard.routers import cards, sessions

__all__ = ["cards", "sessions"]
