"""Merge engine for vocabloop snapshots.

Reconciles two independently evolved snapshots of the same user: the
``local`` one submitted by a device and the ``cloud`` one held by the
record store. Every function here is pure and total: it never raises on
malformed input and never mutates its arguments' containers.

Conflict policy:
- Word records: last-reviewed-wins on ``next``, ties go to local, whole
  records only (no field-level merge).
- Counters (points, streaks, totalReviewed): maximum of both sides.
- Achievements: set union, local insertion order first.
- Reading history: local-then-cloud concatenation, first occurrence wins,
  capped at HISTORY_LIMIT.
"""

import json
import logging
from typing import Any, Dict, List, Optional

from vocabloop.types import (
    HISTORY_LIMIT,
    HISTORY_TIMESTAMP_KEY,
    MISSING,
    DeckState,
    GlobalState,
    HistoryTruncation,
    Snapshot,
    WordRecord,
    as_list,
    as_mapping,
)

logger = logging.getLogger(__name__)


def canonical_key(item: Any) -> str:
    """Structural-equality key for a history entry.

    Objects compare field by field regardless of key order; scalars compare
    by value and type, so ``1``, ``"1"`` and ``true`` stay distinct.
    """
    return json.dumps(item, sort_keys=True, separators=(",", ":"), default=str)


def _pick_record(local: WordRecord, cloud: WordRecord) -> WordRecord:
    if not local.present:
        return cloud
    if not cloud.present:
        return local
    return local if local.next >= cloud.next else cloud


def merge_word_states(local: Optional[DeckState], cloud: Optional[DeckState]) -> DeckState:
    """Merge one deck's per-word records.

    If either side is absent the other is returned unchanged.
    """
    if local is None:
        return cloud if cloud is not None else DeckState()
    if cloud is None:
        return local

    merged: Dict[str, WordRecord] = {}
    for word in list(local.state) + [w for w in cloud.state if w not in local.state]:
        l_rec = local.state.get(word)
        c_rec = cloud.state.get(word)
        if l_rec is None:
            merged[word] = c_rec
        elif c_rec is None:
            merged[word] = l_rec
        else:
            merged[word] = _pick_record(l_rec, c_rec)

    extra = dict(cloud.extra)
    extra.update(local.extra)

    return DeckState(
        state=merged,
        points=max(local.points, cloud.points),
        streak=max(local.streak, cloud.streak),
        auto_play=local.auto_play if local.auto_play is not MISSING else cloud.auto_play,
        extra=extra,
    )


def merge_decks(
    local_decks: Optional[Dict[str, DeckState]],
    cloud_decks: Optional[Dict[str, DeckState]],
) -> Dict[str, DeckState]:
    """Merge every deck appearing on either side."""
    local_decks = local_decks or {}
    cloud_decks = cloud_decks or {}
    deck_ids = list(local_decks) + [d for d in cloud_decks if d not in local_decks]
    return {
        deck_id: merge_word_states(local_decks.get(deck_id), cloud_decks.get(deck_id))
        for deck_id in deck_ids
    }


def _union(first: List[Any], second: List[Any]) -> List[Any]:
    seen = set()
    result = []
    for item in list(first) + list(second):
        key = canonical_key(item)
        if key not in seen:
            seen.add(key)
            result.append(item)
    return result


def merge_global(local: Optional[GlobalState], cloud: Optional[GlobalState]) -> GlobalState:
    """Merge streak, study date, review count and achievements."""
    if local is None:
        return cloud if cloud is not None else GlobalState()
    if cloud is None:
        return local

    extra = dict(cloud.extra)
    extra.update(local.extra)

    # YYYY-MM-DD sorts chronologically as a plain string
    if local.last_study_date >= cloud.last_study_date:
        last_study_date = local.last_study_date
    else:
        last_study_date = cloud.last_study_date

    return GlobalState(
        daily_streak=max(local.daily_streak, cloud.daily_streak),
        last_study_date=last_study_date,
        total_reviewed=max(local.total_reviewed, cloud.total_reviewed),
        achievements=_union(local.achievements, cloud.achievements),
        extra=extra,
    )


def _entry_timestamp(item: Any, key: str) -> Any:
    if isinstance(item, dict):
        value = item.get(key)
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return (1, value, "")
        if isinstance(value, str) and value:
            return (2, 0, value)
    return (0, 0, "")


def merge_history(
    local: Any,
    cloud: Any,
    limit: int = HISTORY_LIMIT,
    truncation: HistoryTruncation = HistoryTruncation.POSITION,
    timestamp_key: str = HISTORY_TIMESTAMP_KEY,
) -> List[Any]:
    """Merge two reading histories into one bounded, duplicate-free list.

    Local entries come first, so a local entry masks a structurally equal
    cloud entry. With POSITION truncation the last ``limit`` entries of the
    deduplicated list survive, which makes survival depend on the order the
    clients appended entries. TIMESTAMP truncation instead keeps the
    ``limit`` entries with the newest ``timestamp_key`` value; entries
    without one rank oldest, and ties keep their deduplicated order.
    """
    merged = _union(as_list(local), as_list(cloud))
    if len(merged) <= limit:
        return merged
    if truncation == HistoryTruncation.TIMESTAMP:
        merged = sorted(merged, key=lambda item: _entry_timestamp(item, timestamp_key))
    if limit <= 0:
        return []
    return merged[-limit:]


def merge_snapshots(
    local: Snapshot,
    cloud: Snapshot,
    history_limit: int = HISTORY_LIMIT,
    history_truncation: HistoryTruncation = HistoryTruncation.POSITION,
    history_timestamp_key: str = HISTORY_TIMESTAMP_KEY,
) -> Snapshot:
    """Combine a device snapshot with the stored one, field by field."""
    extra = dict(cloud.extra)
    extra.update(local.extra)
    return Snapshot(
        decks=merge_decks(local.decks, cloud.decks),
        global_state=merge_global(local.global_state, cloud.global_state),
        preferred_deck=local.preferred_deck or cloud.preferred_deck or "",
        reading_history=merge_history(
            local.reading_history,
            cloud.reading_history,
            limit=history_limit,
            truncation=history_truncation,
            timestamp_key=history_timestamp_key,
        ),
        extra=extra,
    )


def merge_snapshot_dicts(local: Any, cloud: Any, **options: Any) -> Dict[str, Any]:
    """Wire-level convenience: merge two JSON snapshots into a JSON snapshot."""
    merged = merge_snapshots(
        Snapshot.from_dict(as_mapping(local)),
        Snapshot.from_dict(as_mapping(cloud)),
        **options,
    )
    logger.debug(
        f"Merged snapshot: {len(merged.decks)} decks, "
        f"{len(merged.reading_history)} history entries"
    )
    return merged.to_dict()
