"""Tests for the in-memory match store."""

import json
from datetime import timedelta

import pytest

from totoai.errors import InvalidInputError, MatchNotFoundError, TicketSetNotFoundError
from totoai.match import MatchContext
from totoai.predictor import predict_baseline
from totoai.probability import Fact, FactType
from totoai.store import MatchStore
from totoai.variants import Strategy, VariantsResult


class TestMatchContext:
    def test_from_dict_flat_odds(self, slate_data):
        match = MatchContext.from_dict(slate_data[3])
        assert match.odds.away == 1.85
        assert match.match_id == "m4"

    def test_from_dict_alternate_keys(self):
        match = MatchContext.from_dict({
            "id": 42,
            "home": "Paks",
            "away": "MTK",
            "start_time": "2026-10-25T15:00:00",
            "odds": {"home": 2.0, "draw": 3.4, "away": 3.6},
            "facts": [{"fact_type": "injury", "entity": "Paks", "description": "Keeper out"}],
        })
        assert match.match_id == "42"
        assert match.kickoff == "2026-10-25T15:00:00"
        assert match.facts[0].type == FactType.INJURY

    def test_from_dict_rejects_bad_odds(self):
        with pytest.raises(InvalidInputError):
            MatchContext.from_dict({"match_id": "x", "odds": {"home": 0.9, "draw": 3.0, "away": 3.0}})

    def test_from_dict_requires_id(self):
        with pytest.raises(InvalidInputError):
            MatchContext.from_dict({"home": "Paks", "away": "MTK", "odds": {"home": 2.0, "draw": 3.4, "away": 3.6}})

    def test_from_dict_null_fact_confidence(self):
        match = MatchContext.from_dict({
            "match_id": "x",
            "odds": {"home": 2.0, "draw": 3.4, "away": 3.6},
            "facts": [{"type": "injury", "entity": "Paks", "confidence": None}],
        })
        assert match.facts[0].confidence == 0.5


class TestMatchStore:
    def test_insertion_order(self, store):
        assert [r.match_id for r in store.all()] == ["m1", "m2", "m3", "m4"]
        assert len(store) == 4
        assert "m2" in store

    def test_require_unknown(self, store):
        with pytest.raises(MatchNotFoundError):
            store.require("nope")
        assert store.get("nope") is None

    def test_add_replaces_and_drops_prediction(self, store, slate):
        store.record_prediction("m1", predict_baseline(slate[0]))
        store.add(slate[0])
        assert store.require("m1").prediction is None

    def test_record_prediction(self, store, slate):
        record = store.record_prediction("m2", predict_baseline(slate[1]))
        assert record.predicted_at is not None
        assert record.to_dict()["prediction"]["method"] == "baseline"

    def test_add_facts(self, store):
        store.add_facts("m1", [Fact(type="injury", entity="Ferencvaros")])
        assert len(store.require("m1").match.facts) == 1

    def test_selections_skip_unpredicted(self, store, slate):
        store.record_prediction("m1", predict_baseline(slate[0]))
        store.record_prediction("m3", predict_baseline(slate[2]))

        selections, skipped = store.selections(["m1", "m2", "m3"])

        assert [s.match_id for s in selections] == ["m1", "m3"]
        assert skipped == ["m2"]

    def test_selections_unknown_id(self, store):
        with pytest.raises(MatchNotFoundError):
            store.selections(["m1", "zzz"])


class TestFromFile:
    def test_list_seed(self, tmp_path, slate_data):
        path = tmp_path / "matches.json"
        path.write_text(json.dumps(slate_data))
        store = MatchStore.from_file(path)
        assert len(store) == 4

    def test_wrapped_seed(self, tmp_path, slate_data):
        path = tmp_path / "matches.json"
        path.write_text(json.dumps({"matches": slate_data[:2]}))
        assert len(MatchStore.from_file(path)) == 2

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "matches.json"
        path.write_text("{not json")
        with pytest.raises(InvalidInputError):
            MatchStore.from_file(path)

    def test_entry_without_id(self, tmp_path, slate_data):
        path = tmp_path / "matches.json"
        entry = {k: v for k, v in slate_data[0].items() if k != "match_id"}
        path.write_text(json.dumps([entry, entry]))
        with pytest.raises(InvalidInputError):
            MatchStore.from_file(path)


class TestPredicted:
    def test_only_predicted_newest_first(self, store, slate):
        store.record_prediction("m2", predict_baseline(slate[1]))
        store.record_prediction("m1", predict_baseline(slate[0]))
        store.require("m2").predicted_at -= timedelta(minutes=5)

        assert [r.match_id for r in store.predicted()] == ["m1", "m2"]

    def test_filter_ignores_unknown_ids(self, store, slate):
        store.record_prediction("m1", predict_baseline(slate[0]))
        store.record_prediction("m3", predict_baseline(slate[2]))
        assert [r.match_id for r in store.predicted(["m3", "zzz"])] == ["m3"]


class TestTicketSets:
    def test_save_and_require(self, store):
        result = VariantsResult(strategy=Strategy.SINGLE)
        record = store.save_ticket_set(result, 250.0)

        assert store.require_ticket_set(record.id) is record
        assert record.budget == 250.0
        assert record.result is result

    def test_ids_unique(self, store):
        ids = {store.save_ticket_set(VariantsResult(), 10).id for _ in range(5)}
        assert len(ids) == 5

    def test_unknown_ticket_set(self, store):
        with pytest.raises(TicketSetNotFoundError):
            store.require_ticket_set("nope")
