"""Learner-side course session.

Fetches a read-only copy of the course hierarchy, flattens it, resolves
the active item and exposes prev/next navigation, progress and the
render plan. Every change of the active item discards the evaluation
attempt of the previous one.
"""

from __future__ import annotations

import asyncio
from urllib.parse import quote, urlencode

import structlog

from course_sequencer.dispatch import ContentTypeDispatcher, RenderPlan
from course_sequencer.errors import SequencerError
from course_sequencer.evaluation import EvaluationLifecycle
from course_sequencer.logging_config import course_context
from course_sequencer.models.content import Evaluation
from course_sequencer.notifications import LogNotifier, NoticeLevel, Notifier
from course_sequencer.position import PositionResolver
from course_sequencer.sequence import FlatSequence, FlatSequenceEntry, flatten
from course_sequencer.storage.api_client import CourseApiClient
from course_sequencer.storage.position_store import PositionStore

logger = structlog.get_logger()


def review_link(course_id: str, material_id: str) -> str:
    """Deep link that opens a course directly on ``material_id``."""
    query = urlencode({"materialId": material_id})
    return f"/learn/{quote(course_id, safe='')}?{query}"


class CoursePlayer:
    """One learner's playback session of one course.

    Args:
        client: Course API client (read-only use).
        store: Where the learner's last position is kept.
        learner_id: Learner the position belongs to.
        course_id: Course being played.
        notifier: Receives transient user notices (default: log only).
        dispatcher: Content type dispatcher (default instance if omitted).
        pass_score: Passing score for evaluations (default from settings).
    """

    def __init__(
        self,
        client: CourseApiClient,
        store: PositionStore,
        *,
        learner_id: str,
        course_id: str,
        notifier: Notifier | None = None,
        dispatcher: ContentTypeDispatcher | None = None,
        pass_score: float | None = None,
    ) -> None:
        self._client = client
        self._course_id = course_id
        self._learner_id = learner_id
        self._notify = notifier or LogNotifier()
        self._dispatcher = dispatcher or ContentTypeDispatcher()
        self._pass_score = pass_score
        self._resolver = PositionResolver(
            store,
            learner_id=learner_id,
            course_id=course_id,
            on_change=self._on_position_change,
        )
        self._sequence = FlatSequence()
        self._evaluation: EvaluationLifecycle | None = None
        self._alive = True
        self._log = logger.bind(learner_id=learner_id, course_id=course_id)

    @property
    def course_id(self) -> str:
        return self._course_id

    @property
    def sequence(self) -> FlatSequence:
        return self._sequence

    @property
    def active(self) -> FlatSequenceEntry | None:
        return self._resolver.current

    @property
    def evaluation(self) -> EvaluationLifecycle | None:
        """Lifecycle of the active item, when it is an evaluation."""
        return self._evaluation

    @property
    def progress_percent(self) -> int:
        return self._sequence.progress_percent(self._active_id())

    @property
    def step_label(self) -> str:
        return self._sequence.step_label(self._active_id())

    @property
    def can_go_next(self) -> bool:
        return self._sequence.next(self._active_id()) is not None

    @property
    def can_go_previous(self) -> bool:
        return self._sequence.previous(self._active_id()) is not None

    async def load(self, requested_id: str | None = None) -> FlatSequenceEntry | None:
        """Fetch the course, flatten it and resolve the active item.

        A failed fetch leaves an empty sequence (placeholder state) and
        notifies the learner instead of raising.

        Args:
            requested_id: Deep-linked content item, if any.

        Returns:
            The active entry, or ``None`` for an empty or unavailable course.
        """
        try:
            with course_context(self._course_id, self._learner_id):
                modules = await self._client.list_modules(self._course_id)
                contents = await asyncio.gather(
                    *(self._client.list_module_content(m.id) for m in modules)
                )
        except SequencerError as exc:
            self._log.warning("course_load_failed", error=str(exc))
            if self._alive:
                self._notify(NoticeLevel.ERROR, "Could not load the course content.")
                self._sequence = FlatSequence()
                self._clear_active()
            return None

        if not self._alive:
            self._log.debug("stale_response_ignored", operation="load")
            return None

        self._sequence = flatten(
            m.model_copy(update={"items": items})
            for m, items in zip(modules, contents, strict=True)
        )
        self._log.info("course_loaded", item_count=len(self._sequence))
        return self._resolve(requested_id)

    def go_next(self) -> FlatSequenceEntry | None:
        """Advance one item; ``None`` (no movement) on the last item."""
        target = self._sequence.next(self._active_id())
        if target is None:
            return None
        return self._resolver.activate(self._sequence, target.item_id)

    def go_previous(self) -> FlatSequenceEntry | None:
        """Go back one item; ``None`` (no movement) on the first item."""
        target = self._sequence.previous(self._active_id())
        if target is None:
            return None
        return self._resolver.activate(self._sequence, target.item_id)

    def select(self, item_id: str) -> FlatSequenceEntry:
        """Jump to an item from the syllabus.

        Raises:
            NotFoundError: If the item is not part of this course.
        """
        return self._resolver.activate(self._sequence, item_id)

    def open_reinforcement(self, material_id: str) -> FlatSequenceEntry | None:
        """Follow a reinforcement suggestion as a deep link.

        Falls back to the saved position (then the first item) when the
        material is not part of the course sequence.
        """
        return self._resolve(material_id)

    def render_plan(self) -> RenderPlan | None:
        active = self.active
        if active is None:
            return None
        return self._dispatcher.dispatch(active.item)

    def close(self) -> None:
        """Tear down the session; late responses are ignored."""
        self._alive = False
        self._close_evaluation()

    # ── Private helpers ──

    def _active_id(self) -> str | None:
        active = self.active
        return None if active is None else active.item_id

    def _resolve(self, requested_id: str | None) -> FlatSequenceEntry | None:
        entry = self._resolver.resolve(self._sequence, requested_id)
        if entry is None:
            self._clear_active()
        return entry

    def _clear_active(self) -> None:
        """Placeholder state: no active item and no evaluation attempt."""
        self._resolver.clear()
        self._close_evaluation()

    def _close_evaluation(self) -> None:
        if self._evaluation is not None:
            self._evaluation.close()
            self._evaluation = None

    def _on_position_change(
        self,
        previous: FlatSequenceEntry | None,
        entry: FlatSequenceEntry,
    ) -> None:
        self._close_evaluation()
        if isinstance(entry.item, Evaluation):
            self._evaluation = EvaluationLifecycle(
                self._client,
                module_id=entry.module_id,
                evaluation_id=entry.item_id,
                pass_score=self._pass_score,
            )
