"""Upload images and draw them at random, optionally split into groups."""

__version__ = "1.0.0"
