"""Concatenate a directory tree into a single framed text stream."""

__version__ = "0.1.0"
