"""Sync orchestrator: push, pull and merge on top of the merge engine.

Every operation is one linear sequence::

    validate -> authenticate -> read? -> merge? -> write? -> respond

There is no retry and no partial completion; an operation either writes
exactly once or fails before writing.

Concurrent merges for the same principal are guarded two ways, both on
by default and both switchable off to get plain last-write-wins:
- ``serialize_merges``: an in-process lock per principal around the
  read-modify-write.
- ``compare_and_set``: the merge write only lands if the stored version is
  still the one that was read; otherwise VersionConflictError.
"""

import asyncio
import contextlib
import logging
import weakref
from typing import Any, Dict, Optional

from vocabloop.merge import merge_snapshot_dicts
from vocabloop.protocols import (
    AuthenticationError,
    AuthGate,
    NotConfiguredError,
    RecordStore,
    StorageError,
    ValidationError,
    VersionConflictError,
)
from vocabloop.types import (
    HISTORY_LIMIT,
    HISTORY_TIMESTAMP_KEY,
    VALID_SYNC_ACTIONS,
    HistoryTruncation,
    SyncAction,
    SyncResult,
)

logger = logging.getLogger(__name__)

GENERIC_STORAGE_MESSAGE = "Internal server error."

# Errors that cross the orchestrator boundary unchanged
_PASSTHROUGH = (AuthenticationError, NotConfiguredError, VersionConflictError)


def validate_snapshot_payload(data: Any) -> Dict[str, Any]:
    """Require a non-null JSON object for push and merge."""
    if not isinstance(data, dict):
        raise ValidationError("Missing data payload.")
    return data


def validate_action(action: Any) -> SyncAction:
    if action not in VALID_SYNC_ACTIONS:
        raise ValidationError("Unsupported action. Use push, pull, or merge.")
    return SyncAction(action)


class SyncOrchestrator:
    """Runs sync operations against an auth gate and a record store.

    Args:
        auth_gate: Resolves tokens into principals.
        record_store: Holds one snapshot per principal.
        history_limit: Maximum reading-history length after a merge.
        history_truncation: Position- or timestamp-based history capping.
        history_timestamp_key: Entry field read by timestamp truncation.
        serialize_merges: Hold a per-principal lock across merge read/write.
        compare_and_set: Make the merge write conditional on the read version.
    """

    def __init__(
        self,
        auth_gate: AuthGate,
        record_store: RecordStore,
        history_limit: int = HISTORY_LIMIT,
        history_truncation: HistoryTruncation = HistoryTruncation.POSITION,
        history_timestamp_key: str = HISTORY_TIMESTAMP_KEY,
        serialize_merges: bool = True,
        compare_and_set: bool = True,
    ):
        self.auth_gate = auth_gate
        self.record_store = record_store
        self.history_limit = history_limit
        self.history_truncation = HistoryTruncation(history_truncation)
        self.history_timestamp_key = history_timestamp_key
        self.serialize_merges = serialize_merges
        self.compare_and_set = compare_and_set
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = (
            weakref.WeakValueDictionary()
        )

    # === Boundaries ===

    @contextlib.asynccontextmanager
    async def _boundary(self, operation: str, principal: Optional[str] = None):
        """Translate collaborator failures into the public error taxonomy."""
        try:
            yield
        except _PASSTHROUGH as e:
            if e.principal is None:
                e.principal = principal
            raise
        except Exception as e:
            logger.error(f"{operation} failed for {principal or '<unauthenticated>'}: {e!r}")
            error = StorageError(GENERIC_STORAGE_MESSAGE)
            error.principal = principal
            raise error from e

    async def _authenticate(self, token: Any) -> str:
        if not token or not isinstance(token, str):
            raise AuthenticationError("Invalid or expired token.")
        async with self._boundary("authenticate"):
            return await self.auth_gate.authenticate(token)

    def _lock_for(self, principal: str) -> asyncio.Lock:
        lock = self._locks.get(principal)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[principal] = lock
        return lock

    # === Operations ===

    async def push(self, token: Any, data: Any) -> SyncResult:
        """Overwrite the stored snapshot with ``data`` verbatim."""
        snapshot = validate_snapshot_payload(data)
        principal = await self._authenticate(token)
        async with self._boundary("push", principal):
            record = await self.record_store.put(principal, snapshot)
        logger.info(f"PUSH | {principal} | version={record.version}")
        return SyncResult(
            action=SyncAction.PUSH,
            principal=principal,
            message="Data saved.",
            updated_at=record.updated_at,
        )

    async def pull(self, token: Any) -> SyncResult:
        """Return the stored snapshot, or ``data=None`` if there is none."""
        principal = await self._authenticate(token)
        async with self._boundary("pull", principal):
            record = await self.record_store.get(principal)
        if record is None:
            logger.info(f"PULL | {principal} | no data")
            return SyncResult(
                action=SyncAction.PULL,
                principal=principal,
                message="No cloud data found.",
                data=None,
                include_data=True,
            )
        logger.info(f"PULL | {principal} | version={record.version}")
        return SyncResult(
            action=SyncAction.PULL,
            principal=principal,
            message="Cloud data loaded.",
            data=record.data,
            updated_at=record.updated_at,
            include_data=True,
        )

    async def merge(self, token: Any, data: Any) -> SyncResult:
        """Two-way merge of ``data`` with the stored snapshot; stores and returns the result."""
        local = validate_snapshot_payload(data)
        principal = await self._authenticate(token)
        if self.serialize_merges:
            async with self._lock_for(principal):
                return await self._merge(principal, local)
        return await self._merge(principal, local)

    async def _merge(self, principal: str, local: Dict[str, Any]) -> SyncResult:
        async with self._boundary("merge read", principal):
            stored = await self.record_store.get(principal)
        cloud = stored.data if stored is not None else {}
        merged = merge_snapshot_dicts(
            local,
            cloud,
            history_limit=self.history_limit,
            history_truncation=self.history_truncation,
            history_timestamp_key=self.history_timestamp_key,
        )
        expected_version = None
        if self.compare_and_set:
            expected_version = stored.version if stored is not None else 0
        async with self._boundary("merge write", principal):
            record = await self.record_store.put(principal, merged, expected_version=expected_version)
        logger.info(
            f"MERGE | {principal} | decks={len(merged['decks'])} "
            f"history={len(merged['readingHistory'])} version={record.version}"
        )
        return SyncResult(
            action=SyncAction.MERGE,
            principal=principal,
            message="Merged successfully.",
            data=merged,
            updated_at=record.updated_at,
            include_data=True,
        )

    async def dispatch(self, action: Any, token: Any, data: Any = None) -> SyncResult:
        """Route a wire request ``{action, token, data}`` to its operation."""
        sync_action = validate_action(action)
        if sync_action == SyncAction.PUSH:
            return await self.push(token, data)
        if sync_action == SyncAction.PULL:
            return await self.pull(token)
        return await self.merge(token, data)
