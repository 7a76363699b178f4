from datetime import datetime, timezone
from typing import Any, Dict, Optional
from beanie import Document, Indexed
from pydantic import Field


class AppDocument(Document):
    """One generated application's persisted record and its run metadata."""
    document_id: Indexed(str, unique=True)
    title: Optional[str] = None
    kind: str = "application"

    # Serialized ApplicationRecord
    content: str = ""
    metadata: Dict[str, Any] = Field(default_factory=dict)

    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    class Settings:
        name = "app_documents"
