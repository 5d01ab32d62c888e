"""Serve a Markdown slide deck in the browser and export it to PDF."""

__version__ = "0.1.0"
