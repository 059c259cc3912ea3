"""TaskUp: personal task tracker with deadline auto-expiry."""

__version__ = "0.1.0"
