"""Linear playback order of a course hierarchy.

``flatten`` projects Course -> Module -> ContentItem into a single
list: modules in ascending order, items in ascending order within each
module. The projection is a pure function of the snapshot, recomputed
on every load and never patched incrementally.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Iterator
from dataclasses import dataclass

from course_sequencer.models.content import Evaluation, Material, Module


@dataclass(frozen=True, slots=True)
class FlatSequenceEntry:
    """One item of the flattened sequence, with its owning module."""

    item: Material | Evaluation
    module_id: str
    position: int

    @property
    def item_id(self) -> str:
        return self.item.id


class FlatSequence:
    """Read-only flattened sequence with prev/next navigation.

    Navigation methods return ``None`` for "no movement" at either end;
    they never wrap around.
    """

    __slots__ = ("_entries", "_positions")

    def __init__(self, entries: Iterable[FlatSequenceEntry] = ()) -> None:
        self._entries: tuple[FlatSequenceEntry, ...] = tuple(entries)
        self._positions: dict[str, int] = {
            e.item_id: e.position for e in self._entries
        }

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[FlatSequenceEntry]:
        return iter(self._entries)

    def __getitem__(self, position: int) -> FlatSequenceEntry:
        return self._entries[position]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, FlatSequence):
            return NotImplemented
        return self._entries == other._entries

    def __repr__(self) -> str:
        return f"<FlatSequence(len={len(self._entries)})>"

    @property
    def entries(self) -> list[FlatSequenceEntry]:
        return list(self._entries)

    def first(self) -> FlatSequenceEntry | None:
        return self._entries[0] if self._entries else None

    def position_of(self, item_id: str | None) -> int | None:
        if item_id is None:
            return None
        return self._positions.get(item_id)

    def find(self, item_id: str | None) -> FlatSequenceEntry | None:
        position = self.position_of(item_id)
        return None if position is None else self._entries[position]

    def next(self, current_id: str | None) -> FlatSequenceEntry | None:
        """Entry after ``current_id``.

        With no (or an unknown) current item the first entry is next.
        """
        position = self.position_of(current_id)
        target = 0 if position is None else position + 1
        if target >= len(self._entries):
            return None
        return self._entries[target]

    def previous(self, current_id: str | None) -> FlatSequenceEntry | None:
        position = self.position_of(current_id)
        if position is None or position == 0:
            return None
        return self._entries[position - 1]

    def progress_percent(self, current_id: str | None) -> int:
        """Share of the course reached, rounded half-up to a whole percent.

        ``0`` for an empty sequence or when nothing is active.
        """
        position = self.position_of(current_id)
        if not self._entries or position is None:
            return 0
        return math.floor((position + 1) / len(self._entries) * 100 + 0.5)

    def step_label(self, current_id: str | None) -> str:
        position = self.position_of(current_id)
        step = 0 if position is None else position + 1
        return f"Step {step} of {len(self._entries)}"


def flatten(modules: Iterable[Module]) -> FlatSequence:
    """Depth-first projection of modules and their items.

    Ordering is by ``(order_index, id)`` at both levels, so snapshots
    with duplicate indices still flatten deterministically.

    Args:
        modules: Modules of one course, in any order.

    Returns:
        FlatSequence with absolute positions starting at 0.
    """
    entries: list[FlatSequenceEntry] = []
    for module in sorted(modules, key=lambda m: (m.order_index, m.id)):
        for item in sorted(module.items, key=lambda i: (i.order_index, i.id)):
            entries.append(
                FlatSequenceEntry(item=item, module_id=module.id, position=len(entries))
            )
    return FlatSequence(entries)
