"""Supervised execution of analysis tools as pipeline job steps."""

__version__ = "1.0.0"
