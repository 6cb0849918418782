"""Persistence adapters for contacts and merge history."""

from .base import ContactStore, RepositoryError
from .json_store import JsonContactStore
from .memory import InMemoryContactStore

__all__ = [
    "ContactStore",
    "RepositoryError",
    "InMemoryContactStore",
    "JsonContactStore",
]
