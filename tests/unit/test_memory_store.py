"""
Tests for the in-memory storage adapter and its query evaluator.
"""

from __future__ import annotations

import functools
from datetime import UTC, datetime, timedelta

import pytest
from bson import ObjectId
from pymongo.errors import DuplicateKeyError

from docaccess.adapters import InMemoryStorage
from docaccess.adapters._query import compare_values, matches, project, sort_documents
from docaccess.core.errors import ParseError

T0 = datetime(2026, 1, 1, tzinfo=UTC)
_key = functools.cmp_to_key(compare_values)


@pytest.fixture
def store() -> InMemoryStorage:
    return InMemoryStorage(
        [
            {"_id": 1, "name": "Alpha", "qty": 5, "tags": ["a", "b"], "items": [{"id": "x", "qty": 1}]},
            {"_id": 2, "name": "beta", "qty": 10, "tags": ["b"], "items": []},
            {"_id": 3, "name": "Gamma", "qty": None, "meta": {"color": "red"}},
        ]
    )


class TestMatching:
    """Filter subset evaluation."""

    def test_equality_and_missing_as_null(self) -> None:
        doc = {"a": 1}
        assert matches(doc, {"a": 1})
        assert matches(doc, {"b": None})
        assert not matches(doc, {"a": 2})

    def test_array_element_equality(self) -> None:
        assert matches({"tags": ["a", "b"]}, {"tags": "b"})
        assert matches({"tags": ["a", "b"]}, {"tags": ["a", "b"]})

    def test_dotted_path_through_array(self) -> None:
        doc = {"items": [{"id": "x"}, {"id": "y"}]}
        assert matches(doc, {"items.id": "y"})
        assert not matches(doc, {"items.id": "z"})

    def test_range_operators_respect_type_brackets(self) -> None:
        assert matches({"n": 5}, {"n": {"$gt": 4, "$lte": 5}})
        assert not matches({"n": "5"}, {"n": {"$gt": 4}})
        assert not matches({}, {"n": {"$lt": 10}})

    def test_in_nin_ne_exists(self) -> None:
        doc = {"n": 2}
        assert matches(doc, {"n": {"$in": [1, 2]}})
        assert matches(doc, {"n": {"$nin": [3]}})
        assert matches(doc, {"n": {"$ne": 3}})
        assert matches(doc, {"m": {"$exists": False}})
        assert not matches(doc, {"n": {"$exists": False}})

    def test_nin_on_missing_array_path(self) -> None:
        assert matches({"_id": 1}, {"items.id": {"$nin": ["x"]}})
        assert not matches({"items": [{"id": "x"}]}, {"items.id": {"$nin": ["x"]}})

    def test_regex_with_options(self) -> None:
        assert matches({"name": "Alpha"}, {"name": {"$regex": "alp", "$options": "i"}})
        assert not matches({"name": "Alpha"}, {"name": {"$regex": "alp"}})

    def test_logical_operators(self) -> None:
        doc = {"a": 1, "b": 2}
        assert matches(doc, {"$or": [{"a": 9}, {"b": 2}]})
        assert matches(doc, {"$and": [{"a": 1}, {"b": 2}]})
        assert not matches(doc, {"$nor": [{"a": 1}]})

    def test_bool_is_not_number(self) -> None:
        assert not matches({"flag": True}, {"flag": 1})

    def test_unsupported_operator(self) -> None:
        with pytest.raises(ValueError):
            matches({"a": 1}, {"a": {"$where": "x"}})


class TestOrdering:
    def test_bracket_order(self) -> None:
        values = [T0, True, ObjectId(), [1], {"a": 1}, "s", 1, None]
        ordered = sorted(values, key=_key)
        assert ordered[0] is None
        assert ordered[1] == 1
        assert ordered[2] == "s"
        assert ordered[-1] == T0

    def test_naive_and_aware_dates_compare(self) -> None:
        assert compare_values(datetime(2026, 1, 1), T0) == 0

    def test_multi_key_sort(self) -> None:
        docs = [{"_id": 1, "r": 1}, {"_id": 2, "r": 2}, {"_id": 3, "r": 1}]
        result = sort_documents(docs, [("r", -1), ("_id", 1)])
        assert [d["_id"] for d in result] == [2, 1, 3]


class TestProjection:
    def test_inclusion(self) -> None:
        doc = {"_id": 1, "a": {"b": 1, "c": 2}, "d": 3}
        assert project(doc, {"a.b": 1}) == {"_id": 1, "a": {"b": 1}}

    def test_exclusion(self) -> None:
        assert project({"_id": 1, "a": 1, "b": 2}, {"b": 0}) == {"_id": 1, "a": 1}

    def test_slice_only_keeps_other_fields(self) -> None:
        doc = {"_id": 1, "name": "n", "items": [1, 2, 3, 4]}
        assert project(doc, {"items": {"$slice": [1, 2]}}) == {"_id": 1, "name": "n", "items": [2, 3]}

    def test_slice_negative_skip(self) -> None:
        doc = {"_id": 1, "items": [1, 2, 3, 4]}
        assert project(doc, {"items": {"$slice": [-2, 5]}})["items"] == [3, 4]

    def test_projection_is_a_copy(self) -> None:
        doc = {"_id": 1, "a": {"b": [1]}}
        projected = project(doc, None)
        projected["a"]["b"].append(2)
        assert doc["a"]["b"] == [1]


class TestInsert:
    def test_generates_object_id(self) -> None:
        store = InMemoryStorage()
        new_id = store.insert_one({"name": "x"})
        assert isinstance(new_id, ObjectId)
        assert store.find_one({"_id": new_id})["name"] == "x"

    def test_input_not_mutated(self) -> None:
        store = InMemoryStorage()
        document = {"name": "x"}
        store.insert_one(document)
        assert "_id" not in document

    def test_duplicate_id(self, store: InMemoryStorage) -> None:
        with pytest.raises(DuplicateKeyError):
            store.insert_one({"_id": 1})

    def test_unencodable_document(self) -> None:
        with pytest.raises(ParseError):
            InMemoryStorage().insert_one({"bad": {1, 2}})

    def test_insert_many_skips_failures(self, store: InMemoryStorage) -> None:
        ids = store.insert_many([{"_id": 10}, {"_id": 1}, {"_id": 11}])
        assert ids == [10, 11]
        assert len(store) == 5


class TestFind:
    def test_sort_skip_limit(self, store: InMemoryStorage) -> None:
        found = store.find_many({}, [("_id", -1)], limit=2, skip=1)
        assert [d["_id"] for d in found] == [2, 1]

    def test_results_are_copies(self, store: InMemoryStorage) -> None:
        store.find_many({}, [], limit=10)[0]["name"] = "changed"
        assert store.find_one({"_id": 1})["name"] == "Alpha"

    def test_find_one_with_projection(self, store: InMemoryStorage) -> None:
        assert store.find_one({"_id": 3}, {"meta.color": 1}) == {"_id": 3, "meta": {"color": "red"}}

    def test_find_one_none(self, store: InMemoryStorage) -> None:
        assert store.find_one({"_id": 99}) is None


class TestUpdate:
    def test_set_nested(self, store: InMemoryStorage) -> None:
        assert store.update_one({"_id": 2}, {"$set": {"meta.color": "blue"}}) == 1
        assert store.find_one({"_id": 2})["meta"] == {"color": "blue"}

    def test_no_match(self, store: InMemoryStorage) -> None:
        assert store.update_one({"_id": 99}, {"$set": {"a": 1}}) == 0
        assert len(store) == 3

    def test_positional_set(self) -> None:
        store = InMemoryStorage([{"_id": 1, "items": [{"id": "a", "q": 1}, {"id": "b", "q": 1}]}])
        store.update_one({"_id": 1, "items.id": "b"}, {"$set": {"items.$.q": 5}})
        assert store.find_one({"_id": 1})["items"] == [{"id": "a", "q": 1}, {"id": "b", "q": 5}]

    def test_push_each_creates_array(self, store: InMemoryStorage) -> None:
        store.update_one({"_id": 3}, {"$push": {"items": {"$each": [{"id": 1}, {"id": 2}]}}})
        assert store.find_one({"_id": 3})["items"] == [{"id": 1}, {"id": 2}]

    def test_push_on_non_array_fails_atomically(self, store: InMemoryStorage) -> None:
        with pytest.raises(ValueError):
            store.update_one({"_id": 1}, {"$set": {"qty": 99}, "$push": {"name": 1}})
        assert store.find_one({"_id": 1})["qty"] == 5

    def test_pull_by_condition(self, store: InMemoryStorage) -> None:
        store.update_one({"_id": 1}, {"$pull": {"items": {"id": "x"}}})
        assert store.find_one({"_id": 1})["items"] == []

    def test_upsert_seeds_from_filter(self) -> None:
        store = InMemoryStorage()
        matched = store.update_one(
            {"_id": "p1", "kind": "box"},
            {"$push": {"items": {"$each": [1]}}, "$setOnInsert": {"label": "new"}},
            upsert=True,
        )
        assert matched == 0
        assert store.find_one({"_id": "p1"}) == {
            "_id": "p1",
            "kind": "box",
            "items": [1],
            "label": "new",
        }

    def test_set_on_insert_ignored_on_match(self, store: InMemoryStorage) -> None:
        store.update_one({"_id": 1}, {"$setOnInsert": {"label": "x"}, "$set": {"qty": 6}}, upsert=True)
        doc = store.find_one({"_id": 1})
        assert "label" not in doc
        assert doc["qty"] == 6

    def test_replacement_rejected(self, store: InMemoryStorage) -> None:
        with pytest.raises(ValueError):
            store.update_one({"_id": 1}, {"name": "x"})

    def test_datetime_values_kept(self, store: InMemoryStorage) -> None:
        later = T0 + timedelta(hours=1)
        store.update_one({"_id": 1}, {"$set": {"at": later}})
        assert store.find_one({"_id": 1})["at"] == later

    def test_max_only_moves_forward(self, store: InMemoryStorage) -> None:
        store.update_one({"_id": 1}, {"$max": {"at": T0}})
        store.update_one({"_id": 1}, {"$max": {"at": T0 - timedelta(days=1)}})
        assert store.find_one({"_id": 1})["at"] == T0

        store.update_one({"_id": 1}, {"$max": {"at": T0 + timedelta(days=1)}})
        assert store.find_one({"_id": 1})["at"] == T0 + timedelta(days=1)

    def test_positional_max(self) -> None:
        store = InMemoryStorage([{"_id": 1, "items": [{"id": "a", "at": T0}]}])
        store.update_one({"_id": 1, "items.id": "a"}, {"$max": {"items.$.at": T0 - timedelta(hours=1)}})
        assert store.find_one({"_id": 1})["items"][0]["at"] == T0


class TestDelete:
    def test_delete_one(self, store: InMemoryStorage) -> None:
        assert store.delete_one({"_id": 1}) == 1
        assert store.delete_one({"_id": 1}) == 0
        assert len(store) == 2
