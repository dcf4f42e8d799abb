"""Ordered sibling collections with dense, persisted positions.

Used identically for modules within a course and for the mixed
material/evaluation list within a module. Positions (``order_index``)
are always renumbered 0, 1, 2, ... after any change.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Sequence
from typing import Any, Generic, Protocol, Self, TypeVar

from course_sequencer.errors import NotFoundError


class Positioned(Protocol):
    """Anything with an id and a persisted sibling position."""

    id: str
    order_index: int

    def model_copy(
        self, *, update: dict[str, Any] | None = None, deep: bool = False
    ) -> Self: ...

    def order_entry(self) -> Any: ...


T = TypeVar("T", bound=Positioned)


def reindex(items: Iterable[T]) -> list[T]:
    """Return items with ``order_index`` set to their list position."""
    result: list[T] = []
    for idx, item in enumerate(items):
        if item.order_index != idx:
            item = item.model_copy(update={"order_index": idx})
        result.append(item)
    return result


def normalize_order(items: Iterable[T]) -> list[T]:
    """Sort by ``(order_index, id)`` and renumber densely from 0.

    Duplicate or gapped indices (e.g. after a partial write) are
    repaired deterministically: equal positions fall back to the
    lexicographic id order.
    """
    return reindex(sorted(items, key=lambda i: (i.order_index, i.id)))


def move_to(items: Sequence[T], from_index: int, to_index: int) -> Sequence[T]:
    """Move the element at ``from_index`` to ``to_index``.

    Args:
        items: Current ordered elements.
        from_index: Position of the element to move (0-based).
        to_index: Desired position (0-based).

    Returns:
        New list with every ``order_index`` recomputed, or ``items``
        itself when both indices are equal.

    Raises:
        IndexError: If either index is outside ``0 <= index < len(items)``.
    """
    size = len(items)
    for name, idx in (("from_index", from_index), ("to_index", to_index)):
        if not 0 <= idx < size:
            msg = f"{name} {idx} out of range for {size} items"
            raise IndexError(msg)

    if from_index == to_index:
        return items

    reordered = list(items)
    moved = reordered.pop(from_index)
    reordered.insert(to_index, moved)
    return reindex(reordered)


class OrderedCollection(Generic[T]):
    """Immutable ordered set of siblings.

    Every operation returns a new collection; the payload of the
    current order is always the complete list, never a delta.
    """

    __slots__ = ("_items",)

    def __init__(self, items: Iterable[T] = ()) -> None:
        self._items: tuple[T, ...] = tuple(normalize_order(items))

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[T]:
        return iter(self._items)

    def __getitem__(self, index: int) -> T:
        return self._items[index]

    def __repr__(self) -> str:
        return f"<OrderedCollection(ids={self.ids()})>"

    @property
    def items(self) -> list[T]:
        return list(self._items)

    def ids(self) -> list[str]:
        return [item.id for item in self._items]

    def get(self, item_id: str) -> T | None:
        for item in self._items:
            if item.id == item_id:
                return item
        return None

    def index_of(self, item_id: str) -> int:
        """Position of ``item_id``.

        Raises:
            NotFoundError: If the id is not in the collection.
        """
        for idx, item in enumerate(self._items):
            if item.id == item_id:
                return idx
        msg = f"Item not found in collection: {item_id}"
        raise NotFoundError(msg)

    def move_to(self, from_index: int, to_index: int) -> OrderedCollection[T]:
        moved = move_to(self._items, from_index, to_index)
        if moved is self._items:
            return self
        return OrderedCollection(moved)

    def reordered(self, ordered_ids: Sequence[str]) -> OrderedCollection[T]:
        """Apply a full new order given as an id list.

        Raises:
            NotFoundError: If ``ordered_ids`` is not exactly the current
                set of ids (missing, unknown or duplicated ids).
        """
        by_id = {item.id: item for item in self._items}
        if len(ordered_ids) != len(by_id) or set(ordered_ids) != by_id.keys():
            unknown = sorted(set(ordered_ids) - by_id.keys())
            missing = sorted(by_id.keys() - set(ordered_ids))
            msg = (
                f"Reorder does not match current items "
                f"(unknown={unknown}, missing={missing})"
            )
            raise NotFoundError(msg)
        return OrderedCollection(reindex(by_id[i] for i in ordered_ids))

    def arranged_like(self, ordered_ids: Sequence[str]) -> OrderedCollection[T]:
        """Follow ``ordered_ids`` as far as it goes.

        Ids no longer present are skipped; items missing from
        ``ordered_ids`` keep their relative order at the end.
        """
        rank = {item_id: idx for idx, item_id in enumerate(ordered_ids)}
        listed = sorted(
            (item for item in self._items if item.id in rank),
            key=lambda item: rank[item.id],
        )
        rest = [item for item in self._items if item.id not in rank]
        return OrderedCollection(reindex([*listed, *rest]))

    def appended(self, item: T) -> OrderedCollection[T]:
        """Add ``item`` at the end with ``order_index = len(self)``."""
        item = item.model_copy(update={"order_index": len(self._items)})
        return OrderedCollection((*self._items, item))

    def without(self, item_id: str) -> OrderedCollection[T]:
        self.index_of(item_id)
        return OrderedCollection(
            reindex(item for item in self._items if item.id != item_id)
        )

    def replaced(self, item: T) -> OrderedCollection[T]:
        """Swap in a new version of an existing item, keeping its position."""
        idx = self.index_of(item.id)
        if item.order_index != idx:
            item = item.model_copy(update={"order_index": idx})
        items = list(self._items)
        items[idx] = item
        return OrderedCollection(items)

    def payload(self) -> list[Any]:
        """Full ordered payload for persistence (``order_entry`` per item)."""
        return [item.order_entry() for item in self._items]
