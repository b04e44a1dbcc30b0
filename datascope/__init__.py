"""DataScope — statistical exploration engine for uploaded tabular data."""

__version__ = "1.0.0"
