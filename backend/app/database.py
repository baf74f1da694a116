"""Record store wiring for the backend.

Supabase is the hosted store. When it is not configured the backend falls
back to the local SQLite store, unless ``require_remote_store`` is set,
in which case every request fails with NotConfiguredError.
"""

import json
from typing import Annotated, Any

from fastapi import Depends
from supabase import Client, create_client

from vocabloop.protocols import NotConfiguredError, VersionConflictError
from vocabloop.storage import SQLiteRecordStore
from vocabloop.types import StoredSnapshot, utc_now_ms

from .config import Settings, get_settings
from .logging_config import get_logger

logger = get_logger("vocabloop.database")

# =============================================================================
# Table Names
# =============================================================================

USERS_TABLE = "users"
SYNC_DATA_TABLE = "sync_data"

NOT_CONFIGURED_MESSAGE = "Backend database not configured. Contact the administrator."

_supabase_client: Client | None = None
_sqlite_stores: dict[str, SQLiteRecordStore] = {}
_supabase_store = None


def get_supabase_client(settings: Settings | None = None) -> Client:
    """Get cached Supabase client."""
    global _supabase_client
    if _supabase_client is None:
        if settings is None:
            settings = get_settings()
        if not settings.supabase_url or not settings.supabase_key:
            raise NotConfiguredError(NOT_CONFIGURED_MESSAGE)
        _supabase_client = create_client(settings.supabase_url, settings.supabase_key)
    return _supabase_client


class SupabaseRecordStore:
    """Record store and account store on Supabase tables.

    ``sync_data``: username (PK), data (jsonb), updated_at (bigint), version (int)
    ``users``: username (PK), password_hash (text), created_at (bigint)
    """

    def __init__(self, db: Client):
        self.db = db

    # === Record Store ===

    async def get(self, principal: str) -> StoredSnapshot | None:
        result = (
            self.db.table(SYNC_DATA_TABLE)
            .select("data, updated_at, version")
            .eq("username", principal)
            .limit(1)
            .execute()
        )
        if not result.data:
            return None
        row = result.data[0]
        data = row.get("data")
        if isinstance(data, str):
            data = json.loads(data)
        return StoredSnapshot(
            data=data if isinstance(data, dict) else {},
            updated_at=row.get("updated_at") or 0,
            version=row.get("version") or 1,
        )

    async def put(
        self,
        principal: str,
        data: dict[str, Any],
        expected_version: int | None = None,
    ) -> StoredSnapshot:
        now = utc_now_ms()
        if expected_version is None:
            current = await self.get(principal)
            version = (current.version if current else 0) + 1
            self.db.table(SYNC_DATA_TABLE).upsert({
                "username": principal,
                "data": data,
                "updated_at": now,
                "version": version,
            }).execute()
            return StoredSnapshot(data=data, updated_at=now, version=version)

        version = expected_version + 1
        if expected_version == 0:
            try:
                self.db.table(SYNC_DATA_TABLE).insert({
                    "username": principal,
                    "data": data,
                    "updated_at": now,
                    "version": version,
                }).execute()
            except Exception:
                current = await self.get(principal)
                if current is not None:
                    raise VersionConflictError(principal, expected_version, current.version)
                raise
            return StoredSnapshot(data=data, updated_at=now, version=version)

        result = (
            self.db.table(SYNC_DATA_TABLE)
            .update({"data": data, "updated_at": now, "version": version})
            .eq("username", principal)
            .eq("version", expected_version)
            .execute()
        )
        if not result.data:
            current = await self.get(principal)
            raise VersionConflictError(
                principal, expected_version, current.version if current else None
            )
        return StoredSnapshot(data=data, updated_at=now, version=version)

    # === Account Store ===

    async def account_exists(self, username: str) -> bool:
        return await self.get_account(username) is not None

    async def get_account(self, username: str) -> dict | None:
        result = (
            self.db.table(USERS_TABLE)
            .select("username, password_hash, created_at")
            .eq("username", username)
            .limit(1)
            .execute()
        )
        return result.data[0] if result.data else None

    async def create_account(self, username: str, password_hash: str) -> dict:
        if await self.account_exists(username):
            raise ValueError(f"Account already exists: {username}")
        record = {
            "username": username,
            "password_hash": password_hash,
            "created_at": utc_now_ms(),
        }
        result = self.db.table(USERS_TABLE).insert(record).execute()
        return result.data[0] if result.data else record


def get_record_store(settings: Settings | None = None):
    """Pick the record store for the current configuration."""
    if settings is None:
        settings = get_settings()
    global _supabase_store
    if settings.supabase_url and settings.supabase_key:
        if _supabase_store is None:
            _supabase_store = SupabaseRecordStore(get_supabase_client(settings))
        return _supabase_store
    if settings.require_remote_store:
        logger.error("SUPABASE_URL / SUPABASE_SECRET_KEY not set but require_remote_store is on")
        raise NotConfiguredError(NOT_CONFIGURED_MESSAGE)
    store = _sqlite_stores.get(settings.sqlite_path)
    if store is None:
        logger.info(f"No Supabase configured - using local SQLite at {settings.sqlite_path}")
        store = SQLiteRecordStore(settings.sqlite_path)
        _sqlite_stores[settings.sqlite_path] = store
    return store


def get_db(settings: Annotated[Settings, Depends(get_settings)]):
    """FastAPI dependency for the record store."""
    return get_record_store(settings)


# Type alias for dependency injection
Database = Annotated[Any, Depends(get_db)]
