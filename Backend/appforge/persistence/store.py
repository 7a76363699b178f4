# appforge/persistence/store.py
"""
Document store boundary.

The pipeline saves the assembled application and the auto-deploy trigger
reads it back and writes the deployment result. Both go through
DocumentStore; Mongo (via Beanie) backs it when connected, an in-process
dict otherwise.
"""
import asyncio
import copy
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Protocol

from appforge.core.exceptions import DocumentNotFoundError, PersistenceError
from appforge.core.logging import log


@dataclass
class StoredDocument:
    id: str
    title: Optional[str] = None
    content: str = ""
    kind: str = "application"
    metadata: Dict[str, Any] = field(default_factory=dict)


class DocumentStore(Protocol):
    async def get_document(self, document_id: str) -> StoredDocument:
        """Raises DocumentNotFoundError when the document does not exist."""
        ...

    async def save_document(
        self,
        document_id: str,
        content: str,
        metadata: Optional[Dict[str, Any]] = None,
        title: Optional[str] = None,
    ) -> StoredDocument:
        ...


class InMemoryDocumentStore:
    """Process-local store used when MongoDB is unavailable and in tests."""

    def __init__(self) -> None:
        self._documents: Dict[str, StoredDocument] = {}
        self._lock = asyncio.Lock()

    async def get_document(self, document_id: str) -> StoredDocument:
        async with self._lock:
            doc = self._documents.get(document_id)
            if doc is None:
                raise DocumentNotFoundError(document_id)
            return copy.deepcopy(doc)

    async def save_document(
        self,
        document_id: str,
        content: str,
        metadata: Optional[Dict[str, Any]] = None,
        title: Optional[str] = None,
    ) -> StoredDocument:
        async with self._lock:
            doc = self._documents.get(document_id) or StoredDocument(id=document_id)
            doc.content = content
            if metadata is not None:
                doc.metadata = copy.deepcopy(metadata)
            if title is not None:
                doc.title = title
            self._documents[document_id] = doc
            return copy.deepcopy(doc)


class BeanieDocumentStore:
    """MongoDB-backed store over the AppDocument collection."""

    async def get_document(self, document_id: str) -> StoredDocument:
        from appforge.models import AppDocument

        try:
            doc = await AppDocument.find_one(AppDocument.document_id == document_id)
        except Exception as e:
            raise PersistenceError(document_id, str(e)) from e

        if doc is None:
            raise DocumentNotFoundError(document_id)
        return StoredDocument(
            id=doc.document_id,
            title=doc.title,
            content=doc.content,
            kind=doc.kind,
            metadata=dict(doc.metadata),
        )

    async def save_document(
        self,
        document_id: str,
        content: str,
        metadata: Optional[Dict[str, Any]] = None,
        title: Optional[str] = None,
    ) -> StoredDocument:
        from appforge.models import AppDocument

        try:
            doc = await AppDocument.find_one(AppDocument.document_id == document_id)
            if doc is None:
                doc = AppDocument(document_id=document_id, content=content, metadata=metadata or {}, title=title)
                await doc.insert()
                log("DB", f"💾 Created document {document_id}")
            else:
                doc.content = content
                if metadata is not None:
                    doc.metadata = metadata
                if title is not None:
                    doc.title = title
                doc.updated_at = datetime.now(timezone.utc)
                await doc.save()
        except Exception as e:
            raise PersistenceError(document_id, str(e)) from e

        return StoredDocument(
            id=doc.document_id,
            title=doc.title,
            content=doc.content,
            kind=doc.kind,
            metadata=dict(doc.metadata),
        )
