"""
Shared snapshot types for vocabloop.

A Snapshot is the complete synchronizable learning state of one user. The
types here are the contract between devices, the merge engine and the
record stores. They are parsed from and written back to the JSON wire
shape with ``from_dict`` / ``to_dict``; parsing never raises; malformed
fields degrade to empty defaults.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

# Maximum number of reading-history entries kept after a merge
HISTORY_LIMIT = 50

# Default per-entry field used when history is truncated by timestamp
HISTORY_TIMESTAMP_KEY = "ts"


def utc_now_ms() -> int:
    """Current time as integer epoch milliseconds."""
    return int(time.time() * 1000)


class _Missing:
    """Marker for a key that was absent from the wire payload."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING = _Missing()


def as_mapping(value: Any) -> Dict[str, Any]:
    """Return ``value`` if it is a dict, else an empty dict."""
    return value if isinstance(value, dict) else {}


def as_list(value: Any) -> List[Any]:
    """Return ``value`` if it is a list, else an empty list."""
    return value if isinstance(value, list) else []


def coerce_count(value: Any) -> int:
    """Read a counter field; anything that is not a real number counts as 0."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    return value


def coerce_date(value: Any) -> str:
    """Read a ``YYYY-MM-DD`` field; non-strings count as the empty string."""
    return value if isinstance(value, str) else ""


# === Enums ===


class SyncAction(str, Enum):
    """Operations a client can request."""

    PUSH = "push"
    PULL = "pull"
    MERGE = "merge"


VALID_SYNC_ACTIONS = frozenset(a.value for a in SyncAction)


class HistoryTruncation(str, Enum):
    """How the merged reading history is cut down to HISTORY_LIMIT."""

    POSITION = "position"  # keep the trailing entries of the deduplicated list
    TIMESTAMP = "timestamp"  # keep the entries with the newest per-entry timestamp


# === Snapshot Types ===


@dataclass
class WordRecord:
    """Spaced-repetition bookkeeping for one word.

    Opaque except for ``next``, the epoch-ms instant of the next scheduled
    review, which is the freshness signal used for conflict resolution.
    ``payload`` is the record exactly as the client sent it.
    """

    payload: Any

    @property
    def next(self) -> int:
        if isinstance(self.payload, dict):
            return coerce_count(self.payload.get("next"))
        return 0

    @property
    def present(self) -> bool:
        return self.payload is not None

    def to_value(self) -> Any:
        return self.payload


@dataclass
class DeckState:
    """Learning progress for one deck."""

    state: Dict[str, WordRecord] = field(default_factory=dict)
    points: int = 0
    streak: int = 0
    auto_play: Any = MISSING  # MISSING when the client never set it
    extra: Dict[str, Any] = field(default_factory=dict)

    _KNOWN = ("state", "points", "streak", "autoPlay")

    @classmethod
    def from_dict(cls, value: Any) -> "DeckState":
        data = as_mapping(value)
        return cls(
            state={word: WordRecord(rec) for word, rec in as_mapping(data.get("state")).items()},
            points=coerce_count(data.get("points")),
            streak=coerce_count(data.get("streak")),
            auto_play=data["autoPlay"] if "autoPlay" in data else MISSING,
            extra={k: v for k, v in data.items() if k not in cls._KNOWN},
        )

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "state": {word: rec.to_value() for word, rec in self.state.items()},
            "points": self.points,
            "streak": self.streak,
        }
        if self.auto_play is not MISSING:
            result["autoPlay"] = self.auto_play
        for key, value in self.extra.items():
            result.setdefault(key, value)
        return result


@dataclass
class GlobalState:
    """Cross-deck streak and achievement counters."""

    daily_streak: int = 0
    last_study_date: str = ""
    total_reviewed: int = 0
    achievements: List[Any] = field(default_factory=list)
    extra: Dict[str, Any] = field(default_factory=dict)

    _KNOWN = ("dailyStreak", "lastStudyDate", "totalReviewed", "achievements")

    @classmethod
    def from_dict(cls, value: Any) -> "GlobalState":
        data = as_mapping(value)
        return cls(
            daily_streak=coerce_count(data.get("dailyStreak")),
            last_study_date=coerce_date(data.get("lastStudyDate")),
            total_reviewed=coerce_count(data.get("totalReviewed")),
            achievements=list(as_list(data.get("achievements"))),
            extra={k: v for k, v in data.items() if k not in cls._KNOWN},
        )

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "dailyStreak": self.daily_streak,
            "lastStudyDate": self.last_study_date,
            "totalReviewed": self.total_reviewed,
            "achievements": list(self.achievements),
        }
        for key, value in self.extra.items():
            result.setdefault(key, value)
        return result


@dataclass
class Snapshot:
    """The complete synchronizable state for one user."""

    decks: Dict[str, DeckState] = field(default_factory=dict)
    global_state: GlobalState = field(default_factory=GlobalState)
    preferred_deck: str = ""
    reading_history: List[Any] = field(default_factory=list)
    extra: Dict[str, Any] = field(default_factory=dict)

    _KNOWN = ("decks", "global", "preferredDeck", "readingHistory")

    @classmethod
    def from_dict(cls, value: Any) -> "Snapshot":
        data = as_mapping(value)
        preferred = data.get("preferredDeck")
        return cls(
            decks={
                deck_id: DeckState.from_dict(deck)
                for deck_id, deck in as_mapping(data.get("decks")).items()
            },
            global_state=GlobalState.from_dict(data.get("global")),
            preferred_deck=preferred if isinstance(preferred, str) else "",
            reading_history=list(as_list(data.get("readingHistory"))),
            extra={k: v for k, v in data.items() if k not in cls._KNOWN},
        )

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "decks": {deck_id: deck.to_dict() for deck_id, deck in self.decks.items()},
            "global": self.global_state.to_dict(),
            "preferredDeck": self.preferred_deck,
            "readingHistory": list(self.reading_history),
        }
        for key, value in self.extra.items():
            result.setdefault(key, value)
        return result


# === Storage / Orchestration Types ===


@dataclass
class StoredSnapshot:
    """A snapshot as held by a record store."""

    data: Dict[str, Any]
    updated_at: int  # epoch milliseconds of the last write
    version: int = 1  # incremented on every write


@dataclass
class SyncResult:
    """Outcome of a push, pull or merge."""

    action: SyncAction
    message: str
    data: Optional[Dict[str, Any]] = None
    updated_at: Optional[int] = None
    include_data: bool = False  # pull/merge always report data, even when None
    principal: Optional[str] = None

    def to_response(self) -> Dict[str, Any]:
        """Render the success body sent to clients."""
        body: Dict[str, Any] = {"ok": True}
        if self.include_data:
            body["data"] = self.data
        if self.updated_at is not None:
            body["updatedAt"] = self.updated_at
        body["message"] = self.message
        return body
