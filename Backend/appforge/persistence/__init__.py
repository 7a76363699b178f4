# appforge/persistence/__init__.py
"""
Persistence module - application documents.
"""
from .store import BeanieDocumentStore, DocumentStore, InMemoryDocumentStore, StoredDocument

__all__ = [
    "BeanieDocumentStore",
    "DocumentStore",
    "InMemoryDocumentStore",
    "StoredDocument",
]
