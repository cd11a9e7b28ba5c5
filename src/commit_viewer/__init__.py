"""Paginated, cached access to remote commit history."""

__version__ = "0.1.0"
