"""Pydantic models for API requests and responses.

Request models are deliberately loose: shape errors (missing data, unknown
action) are reported by the orchestrator as ``{ok: false, message}`` with
a 400 rather than as framework validation errors.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

# =============================================================================
# Sync Models
# =============================================================================


class SyncRequest(BaseModel):
    """Body of ``POST /api/sync``."""
    action: str | None = None  # push | pull | merge
    token: Any = None  # checked by the auth gate, so a non-string is a 401
    data: Any = None  # Snapshot; required for push and merge


class SyncResponse(BaseModel):
    """Successful sync response."""
    model_config = ConfigDict(populate_by_name=True)

    ok: bool = True
    data: dict[str, Any] | None = None
    updated_at: int | None = Field(default=None, alias="updatedAt")
    message: str


# =============================================================================
# Auth Models
# =============================================================================


class AuthRequest(BaseModel):
    """Body of ``POST /api/auth``."""
    action: str | None = None  # register | login
    username: str | None = None
    password: str | None = None


class UserInfo(BaseModel):
    username: str


class AuthResponse(BaseModel):
    """Successful register/login response."""
    ok: bool = True
    message: str
    user: UserInfo
    token: str


# =============================================================================
# Errors
# =============================================================================


class ErrorResponse(BaseModel):
    ok: bool = False
    message: str
