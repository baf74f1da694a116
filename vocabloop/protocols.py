"""
vocabloop Protocol Definitions
==============================

Interface contracts between the sync orchestrator and its collaborators.

Collaborators and their roles:
- Auth Gate:     Resolves a caller-supplied token into a principal.
- Record Store:  Holds exactly one snapshot per principal. get/put, nothing else.
- Account Store: Knows which principals have a backing account.

The merge engine itself (vocabloop.merge) has no collaborators. It is pure.

Error handling philosophy:
- Malformed request shapes raise ValidationError before any I/O
- Rejected tokens and unknown accounts raise AuthenticationError
- A record store that was never provisioned raises NotConfiguredError
- Any other record store failure surfaces as StorageError
- A compare-and-set write that lost a race raises VersionConflictError
"""

from __future__ import annotations

from typing import Any, Dict, Optional, Protocol, runtime_checkable

from vocabloop.types import StoredSnapshot

# =============================================================================
# ERRORS
# =============================================================================


class VocabLoopError(Exception):
    """Base for all vocabloop errors.

    ``principal`` is filled in once the caller has been authenticated.
    """

    principal: Optional[str] = None


class AuthenticationError(VocabLoopError):
    """Raised when a token is missing, invalid, expired, or has no account."""

    pass


class ValidationError(VocabLoopError):
    """Raised when a request is malformed (missing data, unknown action)."""

    pass


class StorageError(VocabLoopError):
    """Raised by record stores on read/write failures."""

    pass


class NotConfiguredError(StorageError):
    """Raised when the record store has not been provisioned.

    Kept distinct from StorageError so operators can tell a missing
    environment variable apart from a bug.
    """

    pass


class VersionConflictError(StorageError):
    """Raised when a compare-and-set write observes a newer stored version.

    Another request for the same principal wrote between our read and
    our write.
    """

    def __init__(self, principal: str, expected_version: int, actual_version: Optional[int]):
        self.principal = principal
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Version conflict for {principal}: "
            f"expected version {expected_version}, found {actual_version}"
        )


# =============================================================================
# COLLABORATORS
# =============================================================================


@runtime_checkable
class AuthGate(Protocol):
    """Resolves a token into an authenticated principal."""

    async def authenticate(self, token: Any) -> str:
        """Return the principal for ``token`` or raise AuthenticationError."""
        ...


@runtime_checkable
class RecordStore(Protocol):
    """Durable mapping from principal to its current snapshot."""

    async def get(self, principal: str) -> Optional[StoredSnapshot]:
        """Return the stored snapshot, or None if nothing was ever written."""
        ...

    async def put(
        self,
        principal: str,
        data: Dict[str, Any],
        expected_version: Optional[int] = None,
    ) -> StoredSnapshot:
        """Replace the stored snapshot.

        When ``expected_version`` is given the write only succeeds if the
        stored version still equals it (0 meaning "nothing stored yet");
        otherwise VersionConflictError is raised.
        """
        ...


@runtime_checkable
class AccountStore(Protocol):
    """Registry of principals that have an account."""

    async def account_exists(self, username: str) -> bool:
        ...

    async def get_account(self, username: str) -> Optional[Dict[str, Any]]:
        ...

    async def create_account(self, username: str, password_hash: str) -> Dict[str, Any]:
        """Create an account. Raises ValueError if the username is taken."""
        ...
