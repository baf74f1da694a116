"""
Pytest fixtures and test configuration for vocabloop tests.
"""

import pytest

from vocabloop.orchestrator import SyncOrchestrator
from vocabloop.protocols import AuthenticationError
from vocabloop.storage import InMemoryRecordStore


class FakeAuthGate:
    """Auth gate that accepts tokens of the form ``token-<username>``."""

    def __init__(self):
        self.calls = []

    async def authenticate(self, token):
        self.calls.append(token)
        if not isinstance(token, str) or not token.startswith("token-"):
            raise AuthenticationError("Invalid or expired token.")
        return token[len("token-"):]


@pytest.fixture
def auth_gate():
    return FakeAuthGate()


@pytest.fixture
def record_store():
    return InMemoryRecordStore()


@pytest.fixture
def orchestrator(auth_gate, record_store):
    return SyncOrchestrator(auth_gate=auth_gate, record_store=record_store)


@pytest.fixture
def local_snapshot():
    """Snapshot as submitted by a device."""
    return {
        "decks": {
            "spanish": {
                "state": {
                    "gato": {"next": 200, "interval": 3, "ease": 2.5},
                    "perro": {"next": 900, "interval": 7, "ease": 2.3},
                },
                "points": 40,
                "streak": 2,
                "autoPlay": False,
            },
        },
        "global": {
            "dailyStreak": 5,
            "lastStudyDate": "2024-01-10",
            "totalReviewed": 120,
            "achievements": ["first_review"],
        },
        "preferredDeck": "spanish",
        "readingHistory": ["story-1", "story-2"],
    }


@pytest.fixture
def cloud_snapshot():
    """Snapshot as held by the server."""
    return {
        "decks": {
            "spanish": {
                "state": {
                    "gato": {"next": 500, "interval": 10, "ease": 2.6},
                    "casa": {"next": 50, "interval": 1, "ease": 2.5},
                },
                "points": 30,
                "streak": 4,
                "autoPlay": True,
            },
            "french": {
                "state": {"chat": {"next": 75}},
                "points": 5,
                "streak": 1,
            },
        },
        "global": {
            "dailyStreak": 3,
            "lastStudyDate": "2024-02-01",
            "totalReviewed": 150,
            "achievements": ["streak_3"],
        },
        "preferredDeck": "french",
        "readingHistory": ["story-2", "story-3"],
    }
