"""Tour seat and accommodation room allocation service."""

__version__ = "1.0.0"
