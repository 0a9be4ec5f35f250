"""
End-to-end flows through DataAccessService over the in-memory store.
"""

from __future__ import annotations

from datetime import timedelta

import bson
import pytest

from docaccess.adapters import FrozenClock, InMemoryStorage
from docaccess.components.data_access import DataAccessService
from docaccess.core.errors import InvalidCursorError, NotFoundError
from docaccess.domain.identifier import Identifier
from docaccess.domain.node import NodeDetails


def _walk_forward(service: DataAccessService, **kwargs: object) -> list[list[int]]:
    pages = []
    page = service.find(**kwargs)
    pages.append([d["_id"] for d in page.items])
    while page.has_next_page:
        page = service.find(after=page.end_cursor, **kwargs)
        pages.append([d["_id"] for d in page.items])
    return pages


class TestPagingWalk:
    """Walking every page visits each record exactly once, in sort order."""

    @pytest.fixture
    def ranked(self, service: DataAccessService) -> DataAccessService:
        service.insert_many([{"_id": i, "rank": i % 4, "name": f"n{i:02d}"} for i in range(23)])
        return service

    @pytest.mark.parametrize("limit", [1, 4, 5, 23, 50])
    def test_forward_walk_with_ties(self, ranked: DataAccessService, limit: int) -> None:
        pages = _walk_forward(ranked, sort=[("rank", -1)], limit=limit)
        visited = [i for page in pages for i in page]

        expected = sorted(range(23), key=lambda i: (-(i % 4), i))
        assert visited == expected
        assert all(0 < len(page) <= limit for page in pages)

    def test_backward_walk_mirrors_forward(self, ranked: DataAccessService) -> None:
        forward = _walk_forward(ranked, sort=[("name", 1)], limit=6)

        page = ranked.find(sort=[("name", 1)], limit=6, after=None)
        while page.has_next_page:
            page = ranked.find(sort=[("name", 1)], limit=6, after=page.end_cursor)
        backward = [[d["_id"] for d in page.items]]
        while page.has_previous_page:
            page = ranked.find(sort=[("name", 1)], limit=6, before=page.start_cursor)
            backward.append([d["_id"] for d in page.items])

        assert backward == list(reversed(forward))

    def test_cursor_stable_under_concurrent_writes(self, ranked: DataAccessService) -> None:
        first = ranked.find(limit=5)
        assert [d["_id"] for d in first.items] == [0, 1, 2, 3, 4]

        ranked.delete_one_by_id(Identifier.integer(2))
        ranked.insert_one({"_id": -1, "rank": 0})

        second = ranked.find(limit=5, after=first.end_cursor)
        assert [d["_id"] for d in second.items] == [5, 6, 7, 8, 9]

    def test_cursor_usable_by_another_instance(self, ranked: DataAccessService, storage: InMemoryStorage) -> None:
        first = ranked.find(limit=3)
        other = DataAccessService(storage)
        assert [d["_id"] for d in other.find(limit=3, after=first.end_cursor).items] == [3, 4, 5]

    def test_cursor_rejected_under_different_sort(self, ranked: DataAccessService) -> None:
        first = ranked.find(limit=3, sort=[("rank", 1)])
        with pytest.raises(InvalidCursorError):
            ranked.find(limit=3, sort=[("name", 1)], after=first.end_cursor)


class TestAuditTrail:
    def test_created_fixed_modified_moves(self, service: DataAccessService, clock: FrozenClock) -> None:
        creator = Identifier.text("alice")
        ident = service.insert_one({"title": "draft"}, actor_id=creator)
        created = NodeDetails.from_document(service.find_one_by_id(ident)["node"])

        for step in range(1, 4):
            clock.advance(minutes=step)
            editor = Identifier.text(f"editor-{step}")
            node = NodeDetails.from_document(
                service.update_one(ident, {"title": f"v{step}"}, actor_id=editor)["node"]
            )
            assert node.date_created == created.date_created
            assert node.created_by_id == creator
            assert node.date_modified == clock.now_utc()
            assert node.updated_by_id == editor
            assert node.date_modified >= node.date_created

    def test_insert_then_delete(self, service: DataAccessService) -> None:
        ident = service.insert_one({"title": "temp"})
        assert service.delete_one_by_id(ident).success is True
        assert service.find_one_by_id(ident) is None
        with pytest.raises(NotFoundError):
            service.update_one(ident, {"title": "gone"})


class TestEmbeddedFlows:
    @pytest.fixture
    def order(self, service: DataAccessService) -> Identifier:
        ident = service.insert_one({"_id": "order-1", "status": "open"})
        service.insert_embedded(
            ident,
            "lines",
            [{"id": "l1", "sku": "A", "qty": 1}, {"id": "l2", "sku": "B", "qty": 2}, {"id": "l3", "sku": "C", "qty": 3}],
        )
        return ident

    def test_update_leaves_siblings_byte_identical(
        self, service: DataAccessService, storage: InMemoryStorage, clock: FrozenClock, order: Identifier
    ) -> None:
        before = storage.find_one({"_id": "order-1"})
        clock.advance(hours=1)

        service.update_embedded(order, "lines", "l2", {"qty": 20})

        after = storage.find_one({"_id": "order-1"})
        assert bson.encode(after["lines"][0]) == bson.encode(before["lines"][0])
        assert bson.encode(after["lines"][2]) == bson.encode(before["lines"][2])
        assert after["lines"][1]["qty"] == 20
        assert after["node"] == before["node"]

    def test_element_node_refreshed(self, service: DataAccessService, clock: FrozenClock, order: Identifier) -> None:
        line = service.find_embedded_one(order, "lines", "l1")
        created = NodeDetails.from_document(line["node"])
        clock.advance(timedelta(days=1))

        service.update_embedded(order, "lines", "l1", {"qty": 9}, actor_id=Identifier.text("bob"))

        node = NodeDetails.from_document(service.find_embedded_one(order, "lines", "l1")["node"])
        assert node.date_created == created.date_created
        assert node.date_modified == created.date_created + timedelta(days=1)
        assert node.updated_by_id == Identifier.text("bob")

    def test_missing_parent_changes_nothing(self, service: DataAccessService, storage: InMemoryStorage, order: Identifier) -> None:
        before = storage.all()
        with pytest.raises(NotFoundError):
            service.insert_embedded("order-404", "lines", [{"sku": "Z"}])
        assert storage.all() == before

    def test_embedded_ids_unique(self, service: DataAccessService, order: Identifier) -> None:
        with pytest.raises(NotFoundError):
            service.insert_embedded(order, "lines", [{"id": "l1", "sku": "dup"}])
        ids = [line["id"] for line in service.get_embedded_by_id(order, "lines")]
        assert ids == ["l1", "l2", "l3"]

    def test_delete_then_page(self, service: DataAccessService, order: Identifier) -> None:
        service.delete_embedded(order, "lines", "l2")
        assert [line["id"] for line in service.get_embedded_by_id(order, "lines", limit=5)] == ["l1", "l3"]
        assert [line["id"] for line in service.get_embedded_by_id(order, "lines", skip=1)] == ["l3"]
