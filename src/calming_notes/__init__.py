"""
Calming Notes - local note storage for a note-taking app.
This package implements the persistence layer (a single SQLite table of rich-text
JSON documents), plain-text preview extraction across the historical document
formats, and an observable application state cache with multi-select delete and undo.

This version uses synchronous operations.
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("calming-notes")
except PackageNotFoundError:
    __version__ = "0.3.0"
