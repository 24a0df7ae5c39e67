"""Box Office Dragon: seat inventory and ticket lifecycle service."""

__version__ = "1.0.0"
