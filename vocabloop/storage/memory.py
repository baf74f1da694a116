"""In-process record and account store.

Used by tests and embedders. Holds deep copies so callers
can never mutate stored state through a returned reference.
"""

import copy
from typing import Any, Dict, Optional

from vocabloop.protocols import VersionConflictError
from vocabloop.types import StoredSnapshot, utc_now_ms


class InMemoryRecordStore:
    """Record store and account store backed by plain dicts."""

    def __init__(self):
        self._records: Dict[str, StoredSnapshot] = {}
        self._accounts: Dict[str, Dict[str, Any]] = {}

    async def get(self, principal: str) -> Optional[StoredSnapshot]:
        record = self._records.get(principal)
        return copy.deepcopy(record) if record else None

    async def put(
        self,
        principal: str,
        data: Dict[str, Any],
        expected_version: Optional[int] = None,
    ) -> StoredSnapshot:
        current = self._records.get(principal)
        current_version = current.version if current else 0
        if expected_version is not None and expected_version != current_version:
            raise VersionConflictError(principal, expected_version, current_version)
        record = StoredSnapshot(
            data=copy.deepcopy(data),
            updated_at=utc_now_ms(),
            version=current_version + 1,
        )
        self._records[principal] = record
        return copy.deepcopy(record)

    async def account_exists(self, username: str) -> bool:
        return username in self._accounts

    async def get_account(self, username: str) -> Optional[Dict[str, Any]]:
        account = self._accounts.get(username)
        return dict(account) if account else None

    async def create_account(self, username: str, password_hash: str) -> Dict[str, Any]:
        if username in self._accounts:
            raise ValueError(f"Account already exists: {username}")
        account = {
            "username": username,
            "password_hash": password_hash,
            "created_at": utc_now_ms(),
        }
        self._accounts[username] = account
        return dict(account)
