"""Inter-agency data requirement confirmation service."""

__version__ = "1.0.0"
