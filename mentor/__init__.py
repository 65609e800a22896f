"""Change-gated mentor session server."""

__version__ = "0.1.0"
