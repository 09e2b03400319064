"""
Adapters layer - Storage backends and spreadsheet input.
"""

from .json_store import JsonFileDocumentStore
from .memory_store import InMemoryDocumentStore
from .spreadsheet import read_rows

__all__ = ["InMemoryDocumentStore", "JsonFileDocumentStore", "read_rows"]
