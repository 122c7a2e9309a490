"""Loaders for document stores."""

from .base import BaseLoader
from .couchdb_loader import CouchDBLoader
from .memory_loader import InMemoryLoader

__all__ = [
    "BaseLoader",
    "CouchDBLoader",
    "InMemoryLoader",
]
