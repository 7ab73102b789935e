"""Interview affect acquisition and aggregation."""

__version__ = "1.0.0"
