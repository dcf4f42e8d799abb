"""Tests for sibling ordering: move, reorder, append, remove."""

from __future__ import annotations

from itertools import product

import pytest

from course_sequencer.errors import NotFoundError
from course_sequencer.models.content import Evaluation, Material, Module
from course_sequencer.ordering import (
    OrderedCollection,
    move_to,
    normalize_order,
    reindex,
)


def _modules(*ids: str) -> list[Module]:
    return [Module(id=mid, title=mid, order_index=idx) for idx, mid in enumerate(ids)]


def _indices(items: list[Module] | OrderedCollection[Module]) -> list[int]:
    return [m.order_index for m in items]


class TestReindex:
    def test_renumbers_from_zero(self) -> None:
        items = [Module(id="a", order_index=5), Module(id="b", order_index=9)]
        result = reindex(items)
        assert _indices(result) == [0, 1]

    def test_unchanged_items_are_reused(self) -> None:
        """Items already at the right index are not copied."""
        items = _modules("a", "b")
        result = reindex(items)
        assert result[0] is items[0]
        assert result[1] is items[1]


class TestNormalizeOrder:
    def test_sorts_by_index(self) -> None:
        items = [
            Module(id="c", order_index=2),
            Module(id="a", order_index=0),
            Module(id="b", order_index=1),
        ]
        assert [m.id for m in normalize_order(items)] == ["a", "b", "c"]

    def test_duplicate_indices_break_ties_by_id(self) -> None:
        """Equal positions fall back to lexicographic id order."""
        items = [
            Module(id="z", order_index=0),
            Module(id="b", order_index=1),
            Module(id="a", order_index=0),
        ]
        result = normalize_order(items)
        assert [m.id for m in result] == ["a", "z", "b"]
        assert _indices(result) == [0, 1, 2]

    def test_gaps_are_closed(self) -> None:
        items = [Module(id="a", order_index=3), Module(id="b", order_index=10)]
        assert _indices(normalize_order(items)) == [0, 1]


class TestMoveTo:
    def test_move_forward(self) -> None:
        """[A, B, C] with moveTo(0, 2) becomes [B, C, A]."""
        result = move_to(_modules("A", "B", "C"), 0, 2)
        assert [m.id for m in result] == ["B", "C", "A"]
        assert _indices(list(result)) == [0, 1, 2]

    def test_move_backward(self) -> None:
        result = move_to(_modules("A", "B", "C", "D"), 3, 1)
        assert [m.id for m in result] == ["A", "D", "B", "C"]
        assert _indices(list(result)) == [0, 1, 2, 3]

    @pytest.mark.parametrize(
        ("from_index", "to_index"), list(product(range(5), repeat=2))
    )
    def test_every_move_keeps_set_and_dense_indices(
        self, from_index: int, to_index: int
    ) -> None:
        items = _modules("A", "B", "C", "D", "E")
        result = list(move_to(items, from_index, to_index))

        assert sorted(m.id for m in result) == ["A", "B", "C", "D", "E"]
        assert _indices(result) == list(range(5))
        assert result[to_index].id == items[from_index].id
        others = [m.id for m in items if m.id != items[from_index].id]
        assert [m.id for m in result if m.id != items[from_index].id] == others

    def test_same_index_is_noop(self) -> None:
        items = _modules("A", "B")
        assert move_to(items, 1, 1) is items

    def test_out_of_range_raises(self) -> None:
        items = _modules("A", "B")
        with pytest.raises(IndexError, match="to_index 2"):
            move_to(items, 0, 2)
        with pytest.raises(IndexError, match="from_index -1"):
            move_to(items, -1, 0)

    def test_move_in_empty_list_raises(self) -> None:
        with pytest.raises(IndexError):
            move_to([], 0, 0)

    def test_input_not_mutated(self) -> None:
        items = _modules("A", "B", "C")
        move_to(items, 0, 2)
        assert [m.id for m in items] == ["A", "B", "C"]
        assert _indices(items) == [0, 1, 2]


class TestOrderedCollection:
    """Immutable sibling collection behaviour."""

    def test_normalizes_on_construction(self) -> None:
        col = OrderedCollection(
            [Module(id="b", order_index=4), Module(id="a", order_index=4)]
        )
        assert col.ids() == ["a", "b"]
        assert _indices(col) == [0, 1]

    def test_move_returns_new_collection(self) -> None:
        col = OrderedCollection(_modules("A", "B", "C"))
        moved = col.move_to(0, 2)
        assert moved is not col
        assert moved.ids() == ["B", "C", "A"]
        assert col.ids() == ["A", "B", "C"]

    def test_move_same_index_returns_self(self) -> None:
        col = OrderedCollection(_modules("A", "B"))
        assert col.move_to(0, 0) is col

    def test_reordered(self) -> None:
        col = OrderedCollection(_modules("A", "B", "C"))
        result = col.reordered(["C", "A", "B"])
        assert result.ids() == ["C", "A", "B"]
        assert _indices(result) == [0, 1, 2]

    def test_reordered_unknown_id_raises(self) -> None:
        col = OrderedCollection(_modules("A", "B"))
        with pytest.raises(NotFoundError, match="unknown=\\['X'\\]"):
            col.reordered(["A", "X"])

    def test_reordered_missing_id_raises(self) -> None:
        col = OrderedCollection(_modules("A", "B", "C"))
        with pytest.raises(NotFoundError, match="missing=\\['C'\\]"):
            col.reordered(["B", "A"])

    def test_reordered_duplicate_id_raises(self) -> None:
        col = OrderedCollection(_modules("A", "B"))
        with pytest.raises(NotFoundError):
            col.reordered(["A", "A", "B"])

    def test_arranged_like_follows_given_order(self) -> None:
        col = OrderedCollection(_modules("B", "C", "A"))
        result = col.arranged_like(["A", "B", "C"])
        assert result.ids() == ["A", "B", "C"]
        assert _indices(result) == [0, 1, 2]

    def test_arranged_like_keeps_new_and_drops_gone(self) -> None:
        """Ids added since the old order stay at the end; removed ids are skipped."""
        col = OrderedCollection(_modules("C", "new", "A"))
        result = col.arranged_like(["A", "B", "C"])
        assert result.ids() == ["A", "C", "new"]
        assert _indices(result) == [0, 1, 2]

    def test_appended_gets_last_index(self) -> None:
        col = OrderedCollection(_modules("A", "B"))
        result = col.appended(Module(id="C", order_index=0))
        assert result.ids() == ["A", "B", "C"]
        assert result[2].order_index == 2

    def test_without_reindexes(self) -> None:
        col = OrderedCollection(_modules("A", "B", "C"))
        result = col.without("A")
        assert result.ids() == ["B", "C"]
        assert _indices(result) == [0, 1]

    def test_without_unknown_raises(self) -> None:
        col = OrderedCollection(_modules("A"))
        with pytest.raises(NotFoundError):
            col.without("Z")

    def test_replaced_keeps_position(self) -> None:
        col = OrderedCollection(_modules("A", "B", "C"))
        renamed = Module(id="B", title="Renamed", order_index=99)
        result = col.replaced(renamed)
        assert result.ids() == ["A", "B", "C"]
        assert result[1].title == "Renamed"
        assert result[1].order_index == 1

    def test_index_of_and_get(self) -> None:
        col = OrderedCollection(_modules("A", "B"))
        assert col.index_of("B") == 1
        assert col.get("A") is not None
        assert col.get("missing") is None
        with pytest.raises(NotFoundError):
            col.index_of("missing")

    def test_module_payload_is_full_id_list(self) -> None:
        col = OrderedCollection(_modules("A", "B", "C")).move_to(2, 0)
        assert col.payload() == ["C", "A", "B"]

    def test_mixed_content_payload_carries_kind(self) -> None:
        """Materials and evaluations share one ordering."""
        col = OrderedCollection(
            [
                Material(id="m1", order_index=0),
                Evaluation(id="e1", order_index=1),
                Material(id="m2", order_index=2),
            ]
        )
        moved = col.move_to(1, 0)
        assert moved.payload() == [
            {"id": "e1", "kind": "evaluation"},
            {"id": "m1", "kind": "material"},
            {"id": "m2", "kind": "material"},
        ]

    def test_len_and_iter(self) -> None:
        col = OrderedCollection(_modules("A", "B"))
        assert len(col) == 2
        assert [m.id for m in col] == ["A", "B"]
        assert len(OrderedCollection()) == 0
