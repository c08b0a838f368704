"""Storage layer: record persistence, directory scanning and page reading."""

from notevault.storage.content_provider import FileContentProvider
from notevault.storage.metadata_store import MetadataStore
from notevault.storage.scanner import DirectoryScanner

__all__ = [
    "DirectoryScanner",
    "FileContentProvider",
    "MetadataStore",
]
