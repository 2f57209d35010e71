"""alertsync - real-time mirror of a remote trading alerts collection."""

__version__ = "0.1.0"
