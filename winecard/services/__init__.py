"""Services for WineCard."""
