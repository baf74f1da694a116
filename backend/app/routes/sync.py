"""Sync route: push, pull and two-way merge of learning snapshots."""

from typing import Annotated

from fastapi import APIRouter, Depends, Request

from vocabloop.orchestrator import SyncOrchestrator
from vocabloop.protocols import VocabLoopError

from ..auth import TokenAuthGate
from ..config import Settings, get_settings
from ..database import Database
from ..logging_config import get_logger, log_sync_operation
from ..models import ErrorResponse, SyncRequest, SyncResponse
from ..rate_limit import limiter

logger = get_logger("vocabloop.sync")
router = APIRouter(prefix="/api", tags=["sync"])

# One orchestrator per record store so per-user merge locks are shared
# across requests
_orchestrators: dict[int, SyncOrchestrator] = {}


def get_orchestrator(
    db: Database,
    settings: Annotated[Settings, Depends(get_settings)],
) -> SyncOrchestrator:
    """FastAPI dependency for the sync orchestrator."""
    orchestrator = _orchestrators.get(id(db))
    if orchestrator is None or orchestrator.record_store is not db:
        orchestrator = SyncOrchestrator(
            auth_gate=TokenAuthGate(settings, db),
            record_store=db,
            history_limit=settings.history_limit,
            history_truncation=settings.history_truncation,
            history_timestamp_key=settings.history_timestamp_key,
            serialize_merges=settings.serialize_merges,
            compare_and_set=settings.compare_and_set,
        )
        _orchestrators[id(db)] = orchestrator
    return orchestrator


Orchestrator = Annotated[SyncOrchestrator, Depends(get_orchestrator)]


@router.post(
    "/sync",
    response_model=SyncResponse,
    response_model_exclude_unset=True,
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
    },
)
@limiter.limit(lambda: get_settings().sync_rate_limit)
async def sync(
    request: Request,
    body: SyncRequest,
    orchestrator: Orchestrator,
):
    """
    Synchronize a learning snapshot.

    Actions:
    - push:  overwrite the cloud copy with ``data``
    - pull:  return the cloud copy (``data: null`` if there is none)
    - merge: two-way merge ``data`` with the cloud copy, store and return it

    Errors are returned as ``{ok: false, message}`` by the handlers in
    ``app.main``.
    """
    action = body.action or "?"
    try:
        result = await orchestrator.dispatch(body.action, body.token, body.data)
    except VocabLoopError as e:
        log_sync_operation(e.principal or "-", action, False, type(e).__name__)
        raise
    log_sync_operation(result.principal or "-", action, True, updated_at=result.updated_at)
    return SyncResponse.model_validate(result.to_response())
