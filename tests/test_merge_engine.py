"""Tests for the snapshot merge engine."""

from vocabloop.merge import (
    canonical_key,
    merge_decks,
    merge_global,
    merge_history,
    merge_snapshot_dicts,
    merge_word_states,
)
from vocabloop.types import (
    MISSING,
    DeckState,
    GlobalState,
    HistoryTruncation,
)


def deck(value) -> DeckState:
    return DeckState.from_dict(value)


class TestMergeWordStates:
    """Per-word last-reviewed-wins merge within one deck."""

    def test_disjoint_words_are_unioned(self):
        local = deck({"state": {"cat": {"next": 100}}, "points": 5, "streak": 2})
        cloud = deck({"state": {"dog": {"next": 50}}, "points": 3, "streak": 4})

        merged = merge_word_states(local, cloud).to_dict()

        assert merged["state"] == {"cat": {"next": 100}, "dog": {"next": 50}}
        assert merged["points"] == 5
        assert merged["streak"] == 4

    def test_cloud_wins_when_reviewed_later(self):
        local = deck({"state": {"cat": {"next": 200, "ease": 1.3}}})
        cloud = deck({"state": {"cat": {"next": 500, "ease": 2.7}}})

        merged = merge_word_states(local, cloud).to_dict()

        assert merged["state"]["cat"] == {"next": 500, "ease": 2.7}

    def test_local_wins_when_reviewed_later(self):
        local = deck({"state": {"cat": {"next": 800, "reps": 4}}})
        cloud = deck({"state": {"cat": {"next": 500, "reps": 9}}})

        merged = merge_word_states(local, cloud).to_dict()

        assert merged["state"]["cat"] == {"next": 800, "reps": 4}

    def test_tie_goes_to_local(self):
        local = deck({"state": {"cat": {"next": 300, "from": "local"}}})
        cloud = deck({"state": {"cat": {"next": 300, "from": "cloud"}}})

        merged = merge_word_states(local, cloud).to_dict()

        assert merged["state"]["cat"]["from"] == "local"

    def test_winner_is_kept_whole_without_field_merge(self):
        local = deck({"state": {"cat": {"next": 100, "onlyLocal": True}}})
        cloud = deck({"state": {"cat": {"next": 900, "onlyCloud": True}}})

        merged = merge_word_states(local, cloud).to_dict()

        assert merged["state"]["cat"] == {"next": 900, "onlyCloud": True}

    def test_missing_next_counts_as_zero(self):
        local = deck({"state": {"cat": {"interval": 1}}})
        cloud = deck({"state": {"cat": {"next": 1, "interval": 2}}})

        merged = merge_word_states(local, cloud).to_dict()

        assert merged["state"]["cat"]["interval"] == 2

    def test_both_missing_next_is_a_tie(self):
        local = deck({"state": {"cat": {"interval": 1}}})
        cloud = deck({"state": {"cat": {"interval": 2}}})

        merged = merge_word_states(local, cloud).to_dict()

        assert merged["state"]["cat"]["interval"] == 1

    def test_null_record_yields_to_other_side_but_key_survives(self):
        local = deck({"state": {"cat": None, "dog": None}})
        cloud = deck({"state": {"cat": {"next": 5}}})

        merged = merge_word_states(local, cloud).to_dict()

        assert merged["state"]["cat"] == {"next": 5}
        assert "dog" in merged["state"]
        assert merged["state"]["dog"] is None

    def test_absent_local_returns_cloud_unchanged(self):
        cloud = deck({"state": {"dog": {"next": 1}}, "points": 3, "streak": 1})
        assert merge_word_states(None, cloud) is cloud

    def test_absent_cloud_returns_local_unchanged(self):
        local = deck({"state": {"cat": {"next": 1}}, "points": 3})
        assert merge_word_states(local, None) is local

    def test_both_absent_returns_empty_deck(self):
        merged = merge_word_states(None, None)
        assert merged.state == {}
        assert merged.points == 0
        assert merged.streak == 0

    def test_auto_play_prefers_local_even_when_false(self):
        local = deck({"autoPlay": False})
        cloud = deck({"autoPlay": True})
        assert merge_word_states(local, cloud).auto_play is False

    def test_auto_play_falls_back_to_cloud(self):
        local = deck({})
        cloud = deck({"autoPlay": True})
        assert merge_word_states(local, cloud).auto_play is True

    def test_auto_play_omitted_when_neither_side_sets_it(self):
        merged = merge_word_states(deck({}), deck({}))
        assert merged.auto_play is MISSING
        assert "autoPlay" not in merged.to_dict()

    def test_malformed_counters_degrade_to_zero(self):
        local = deck({"points": "lots", "streak": None, "state": ["not", "a", "map"]})
        cloud = deck({"points": 7, "streak": True})

        merged = merge_word_states(local, cloud)

        assert merged.points == 7
        assert merged.streak == 0
        assert merged.state == {}

    def test_inputs_are_not_mutated(self):
        local_raw = {"state": {"cat": {"next": 1}}, "points": 1}
        cloud_raw = {"state": {"dog": {"next": 2}}, "points": 2}
        local, cloud = deck(local_raw), deck(cloud_raw)

        merge_word_states(local, cloud)

        assert set(local.state) == {"cat"}
        assert set(cloud.state) == {"dog"}


class TestMergeDecks:
    """Deck keyspace union."""

    def test_union_of_deck_ids(self):
        local = {"es": deck({"state": {"gato": {"next": 1}}})}
        cloud = {"fr": deck({"state": {"chat": {"next": 2}}})}

        merged = merge_decks(local, cloud)

        assert set(merged) == {"es", "fr"}
        assert merged["es"] is local["es"]
        assert merged["fr"] is cloud["fr"]

    def test_shared_deck_is_merged_word_by_word(self):
        local = {"es": deck({"state": {"gato": {"next": 1}}, "points": 9})}
        cloud = {"es": deck({"state": {"perro": {"next": 2}}, "points": 4})}

        merged = merge_decks(local, cloud)

        assert set(merged["es"].state) == {"gato", "perro"}
        assert merged["es"].points == 9

    def test_none_inputs(self):
        assert merge_decks(None, None) == {}


class TestMergeGlobal:
    """Streak / achievement merge."""

    def test_scenario(self):
        local = GlobalState.from_dict(
            {"dailyStreak": 5, "lastStudyDate": "2024-01-10", "achievements": ["a"]}
        )
        cloud = GlobalState.from_dict(
            {"dailyStreak": 3, "lastStudyDate": "2024-02-01", "achievements": ["b"]}
        )

        merged = merge_global(local, cloud)

        assert merged.daily_streak == 5
        assert merged.last_study_date == "2024-02-01"
        assert merged.achievements == ["a", "b"]

    def test_total_reviewed_is_max(self):
        local = GlobalState.from_dict({"totalReviewed": 10})
        cloud = GlobalState.from_dict({"totalReviewed": 42})
        assert merge_global(local, cloud).total_reviewed == 42

    def test_missing_date_is_lexical_minimum(self):
        local = GlobalState.from_dict({})
        cloud = GlobalState.from_dict({"lastStudyDate": "2023-12-31"})
        assert merge_global(local, cloud).last_study_date == "2023-12-31"
        assert merge_global(cloud, local).last_study_date == "2023-12-31"

    def test_shared_achievements_are_not_duplicated(self):
        local = GlobalState.from_dict({"achievements": ["a", "b"]})
        cloud = GlobalState.from_dict({"achievements": ["b", "c", "a"]})
        assert merge_global(local, cloud).achievements == ["a", "b", "c"]

    def test_absent_sides(self):
        cloud = GlobalState.from_dict({"dailyStreak": 2})
        assert merge_global(None, cloud) is cloud
        assert merge_global(cloud, None) is cloud
        assert merge_global(None, None).to_dict() == {
            "dailyStreak": 0,
            "lastStudyDate": "",
            "totalReviewed": 0,
            "achievements": [],
        }


class TestMergeHistory:
    """Bounded, duplicate-free reading history."""

    def test_scenario(self):
        assert merge_history(["x", "y"], ["y", "z"]) == ["x", "y", "z"]

    def test_objects_compare_structurally(self):
        local = [{"id": 1, "title": "A"}]
        cloud = [{"title": "A", "id": 1}, {"id": 2, "title": "B"}]

        merged = merge_history(local, cloud)

        assert merged == [{"id": 1, "title": "A"}, {"id": 2, "title": "B"}]

    def test_local_entry_masks_equal_cloud_entry(self):
        local = [{"id": 1}]
        cloud = [{"id": 1}]
        merged = merge_history(local, cloud)
        assert len(merged) == 1
        assert merged[0] is local[0]

    def test_scalars_of_different_types_stay_distinct(self):
        assert merge_history([1, "1", True], []) == [1, "1", True]

    def test_capped_to_last_fifty(self):
        local = [f"l{i}" for i in range(30)]
        cloud = [f"c{i}" for i in range(25)]

        merged = merge_history(local, cloud)

        assert len(merged) == 50
        assert merged[0] == "l5"
        assert merged[-1] == "c24"

    def test_non_list_inputs_degrade_to_empty(self):
        assert merge_history(None, "oops") == []
        assert merge_history({"a": 1}, ["x"]) == ["x"]

    def test_custom_limit(self):
        assert merge_history(["a", "b", "c"], ["d"], limit=2) == ["c", "d"]

    def test_zero_limit(self):
        assert merge_history(["a"], ["b"], limit=0) == []

    def test_timestamp_truncation_keeps_newest(self):
        local = [{"id": i, "ts": 1000 + i} for i in range(40)]
        cloud = [{"id": 100 + i, "ts": i} for i in range(20)]

        merged = merge_history(local, cloud, limit=45, truncation=HistoryTruncation.TIMESTAMP)

        assert len(merged) == 45
        kept_ids = {item["id"] for item in merged}
        # All 40 recent local entries survive; only the 5 newest cloud ones do
        assert set(range(40)) <= kept_ids
        assert kept_ids - set(range(40)) == {115, 116, 117, 118, 119}

    def test_timestamp_truncation_ranks_untimed_entries_oldest(self):
        local = ["plain", {"id": "b", "ts": 2}]
        cloud = [{"id": "a", "ts": 1}]

        merged = merge_history(local, cloud, limit=2, truncation=HistoryTruncation.TIMESTAMP)

        assert merged == [{"id": "a", "ts": 1}, {"id": "b", "ts": 2}]

    def test_position_truncation_ignores_timestamps(self):
        local = [{"id": "new", "ts": 999}]
        cloud = [{"id": "old", "ts": 1}]

        merged = merge_history(local, cloud, limit=1)

        assert merged == [{"id": "old", "ts": 1}]


class TestCanonicalKey:
    def test_key_order_independent(self):
        assert canonical_key({"a": 1, "b": [1, 2]}) == canonical_key({"b": [1, 2], "a": 1})

    def test_nested_difference_detected(self):
        assert canonical_key({"a": {"b": 1}}) != canonical_key({"a": {"b": 2}})


class TestMergeSnapshotDicts:
    """Whole-snapshot merge on the JSON wire shape."""

    def test_full_merge(self, local_snapshot, cloud_snapshot):
        merged = merge_snapshot_dicts(local_snapshot, cloud_snapshot)

        spanish = merged["decks"]["spanish"]
        assert spanish["state"]["gato"] == {"next": 500, "interval": 10, "ease": 2.6}
        assert spanish["state"]["perro"]["next"] == 900
        assert spanish["state"]["casa"]["next"] == 50
        assert spanish["points"] == 40
        assert spanish["streak"] == 4
        assert spanish["autoPlay"] is False
        assert merged["decks"]["french"] == cloud_snapshot["decks"]["french"]
        assert merged["global"] == {
            "dailyStreak": 5,
            "lastStudyDate": "2024-02-01",
            "totalReviewed": 150,
            "achievements": ["first_review", "streak_3"],
        }
        assert merged["preferredDeck"] == "spanish"
        assert merged["readingHistory"] == ["story-1", "story-2", "story-3"]

    def test_preferred_deck_falls_back_to_cloud(self, local_snapshot, cloud_snapshot):
        local_snapshot["preferredDeck"] = ""
        merged = merge_snapshot_dicts(local_snapshot, cloud_snapshot)
        assert merged["preferredDeck"] == "french"

    def test_merge_with_empty_cloud(self, local_snapshot):
        merged = merge_snapshot_dicts(local_snapshot, {})
        assert merged["decks"]["spanish"]["state"] == local_snapshot["decks"]["spanish"]["state"]
        assert merged["preferredDeck"] == "spanish"

    def test_unknown_top_level_keys_survive(self):
        merged = merge_snapshot_dicts({"theme": "dark"}, {"theme": "light", "lang": "es"})
        assert merged["theme"] == "dark"
        assert merged["lang"] == "es"

    def test_garbage_inputs_do_not_raise(self):
        merged = merge_snapshot_dicts(
            {"decks": "nope", "global": 3, "readingHistory": {"a": 1}},
            None,
        )
        assert merged["decks"] == {}
        assert merged["readingHistory"] == []
        assert merged["preferredDeck"] == ""
