"""API routes."""

from .auth import router as auth_router
from .sync import router as sync_router

__all__ = [
    "auth_router",
    "sync_router",
]
