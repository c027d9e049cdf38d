"""Markdown hyperlink checker with a persistent broken-link journal."""

__version__ = "0.3.0"
