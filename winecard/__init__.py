"""WineCard - tasting note cards with live preview and PNG export."""

__version__ = "0.1.0"
