"""Coding-standards gate for ``@covers`` test annotations."""

__version__ = "0.1.0"
