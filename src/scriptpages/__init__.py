"""Scriptpages - Markdown wiki pages with embedded scripts."""

__version__ = "0.1.0"
