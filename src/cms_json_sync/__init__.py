"""Bidirectional JSON import/export for typed CMS collections."""

__version__ = "0.1.0"
