# appforge/db/__init__.py
"""
Database module.
"""
from typing import Optional

from appforge.core.config import settings
from appforge.core.logging import log

# Motor client instance
_client = None
_db = None
_connection_error: Optional[str] = None


async def connect_db():
    """
    Connect to MongoDB and initialise Beanie.

    If MongoDB is not available the error is kept for get_connection_error()
    and the app falls back to the in-memory document store.
    """
    global _client, _db, _connection_error
    try:
        from motor.motor_asyncio import AsyncIOMotorClient
        from beanie import init_beanie
        from appforge.models import AppDocument

        _client = AsyncIOMotorClient(settings.database.mongo_url, serverSelectionTimeoutMS=5000)
        _db = _client[settings.database.database_name]

        # Fails fast if MongoDB is not running
        await _client.admin.command("ping")
        log("DB", "✅ Connected to MongoDB")

        await init_beanie(database=_db, document_models=[AppDocument])
        log("DB", "✅ Beanie ODM initialized")
        _connection_error = None
    except Exception as e:
        log("DB", f"⚠️ MongoDB not available: {e}")
        log("DB", f"ℹ️ Using in-memory documents. Start MongoDB on {settings.database.mongo_url} to persist them.")
        if _client is not None:
            _client.close()
        _client = None
        _db = None
        _connection_error = str(e)


async def disconnect_db():
    """Disconnect from MongoDB."""
    global _client, _db
    if _client:
        _client.close()
        log("DB", "Disconnected from MongoDB")
    _client = None
    _db = None


def is_connected() -> bool:
    return _db is not None


def get_connection_error() -> Optional[str]:
    return _connection_error
