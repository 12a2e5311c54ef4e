"""Group document finalization and package signing backend."""

__version__ = "1.0.0"
