"""
vocabloop - Snapshot sync and merge for offline vocabulary learning.

Reconciles learning progress recorded on disconnected devices into one
record without losing work done on either device.
"""

from .merge import (
    canonical_key,
    merge_decks,
    merge_global,
    merge_history,
    merge_snapshot_dicts,
    merge_snapshots,
    merge_word_states,
)
from .orchestrator import SyncOrchestrator
from .types import DeckState, GlobalState, Snapshot, WordRecord

try:
    from importlib.metadata import version

    __version__ = version("vocabloop-sync")
except Exception:
    __version__ = "0.0.0"

__all__ = [
    "SyncOrchestrator",
    "Snapshot",
    "DeckState",
    "GlobalState",
    "WordRecord",
    "canonical_key",
    "merge_word_states",
    "merge_decks",
    "merge_global",
    "merge_history",
    "merge_snapshots",
    "merge_snapshot_dicts",
]
