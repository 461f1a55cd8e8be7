"""BusMate local account and profile store."""

__version__ = "0.1.0"
