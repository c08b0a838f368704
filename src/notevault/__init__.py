"""
notevault - a two-level notebook index kept in sync with a directory tree.

A library directory holds notebook subdirectories; each notebook holds note
files. The package keeps an ``index.json`` per library and a ``toc.json`` per
notebook, re-deriving counts, titles and previews from disk on every scan
while preserving the display names, descriptions, tags, icons and colors
users attach to them.

This version uses synchronous operations.
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("notevault")
except PackageNotFoundError:
    __version__ = "0.3.0"
