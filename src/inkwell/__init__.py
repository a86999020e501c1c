"""Inkwell: AI assistant for writing projects."""

__version__ = "0.1.0"
