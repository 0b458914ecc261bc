"""
Persistence module: key/value stores and the debounced writer.
"""
from .base import KeyValueStore, MemoryKeyValueStore
from .sql import SQLKeyValueStore
from .writer import DebouncedWriter

__all__ = [
    # Interface
    "KeyValueStore",
    # Stores
    "MemoryKeyValueStore",
    "SQLKeyValueStore",
    # Debouncing
    "DebouncedWriter",
]
