"""Which content item a learner sees when opening a course.

Priority chain, first match wins:

1. explicitly requested item (deep link) present in the sequence
2. saved learner position present in the sequence
3. first entry of the sequence
4. nothing, for an empty course
"""

from __future__ import annotations

from collections.abc import Callable

import structlog

from course_sequencer.errors import NotFoundError
from course_sequencer.sequence import FlatSequence, FlatSequenceEntry
from course_sequencer.storage.position_store import PositionStore, position_key

logger = structlog.get_logger()

#: Called with (previous, new) active entry after every activation.
OnChange = Callable[[FlatSequenceEntry | None, FlatSequenceEntry], None]


class PositionResolver:
    """Resolves and records the active item for one (learner, course) pair."""

    def __init__(
        self,
        store: PositionStore,
        *,
        learner_id: str,
        course_id: str,
        on_change: OnChange | None = None,
    ) -> None:
        self._store = store
        self._key = position_key(learner_id, course_id)
        self._on_change = on_change
        self._current: FlatSequenceEntry | None = None
        self._log = logger.bind(learner_id=learner_id, course_id=course_id)

    @property
    def current(self) -> FlatSequenceEntry | None:
        return self._current

    def saved_position(self) -> str | None:
        return self._store.get(self._key)

    def resolve(
        self,
        sequence: FlatSequence,
        requested_id: str | None = None,
    ) -> FlatSequenceEntry | None:
        """Pick the active entry for ``sequence``.

        Args:
            sequence: Freshly flattened course.
            requested_id: Deep-linked item id, if any.

        Returns:
            The activated entry, or ``None`` for an empty course.
        """
        if requested_id is not None:
            entry = sequence.find(requested_id)
            if entry is not None:
                return self._activate(entry, source="requested")
            self._log.info("requested_item_missing", item_id=requested_id)

        saved_id = self.saved_position()
        if saved_id is not None:
            entry = sequence.find(saved_id)
            if entry is not None:
                return self._activate(entry, source="saved")
            self._log.info("saved_position_stale", item_id=saved_id)

        first = sequence.first()
        if first is None:
            self._log.info("course_sequence_empty")
            self.clear()
            return None
        return self._activate(first, source="first")

    def activate(self, sequence: FlatSequence, item_id: str) -> FlatSequenceEntry:
        """Navigate directly to ``item_id``.

        Raises:
            NotFoundError: If the item is not part of ``sequence``.
        """
        entry = sequence.find(item_id)
        if entry is None:
            msg = f"Content item not in course sequence: {item_id}"
            raise NotFoundError(msg)
        return self._activate(entry, source="navigation")

    def clear(self) -> None:
        """Drop the active entry; the saved position is kept."""
        self._current = None

    def _activate(self, entry: FlatSequenceEntry, *, source: str) -> FlatSequenceEntry:
        previous = self._current
        self._store.set(self._key, entry.item_id)
        self._current = entry
        self._log.debug(
            "position_activated",
            item_id=entry.item_id,
            position=entry.position,
            source=source,
        )
        if self._on_change is not None:
            self._on_change(previous, entry)
        return entry
