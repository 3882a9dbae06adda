"""Unit membership allocation engine for club hierarchies."""

__version__ = "1.0.0"
