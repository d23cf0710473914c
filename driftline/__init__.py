"""Weather balloon constellation tracking and analytics."""

__version__ = "0.1.0"
