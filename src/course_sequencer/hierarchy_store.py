"""Authoring-side owner of the Course -> Module -> ContentItem tree.

Create / rename / delete operations touch local state only after the
remote write is confirmed. Reorders are optimistic: the new order is
applied locally first, then the complete order is persisted. A failed
reorder write is reported through the notifier and, by default, keeps
the optimistic order (re-sending the full order is always safe).
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Mapping, Sequence
from typing import Any, TypeVar

import structlog

from course_sequencer.config import settings
from course_sequencer.errors import (
    NotFoundError,
    SequencerError,
    TransportError,
    ValidationError,
)
from course_sequencer.logging_config import course_context
from course_sequencer.models.content import (
    Course,
    Evaluation,
    Material,
    Module,
)
from course_sequencer.models.drafts import EvaluationDraft, MaterialDraft
from course_sequencer.notifications import LogNotifier, NoticeLevel, Notifier
from course_sequencer.ordering import OrderedCollection
from course_sequencer.storage.api_client import CourseApiClient

logger = structlog.get_logger()

R = TypeVar("R")
I = TypeVar("I", Material, Evaluation)

Item = Material | Evaluation


def _clean_title(title: str) -> str:
    cleaned = title.strip()
    if not cleaned:
        raise ValidationError("Title must not be blank")
    return cleaned


class HierarchyStore:
    """Two-level course tree for the authoring view.

    Args:
        client: Course API client used for every remote write.
        course_id: Course whose modules this store owns.
        notifier: Receives transient user notices (default: log only).
        revert_failed_reorder: Roll back to the previous order when a
            reorder write fails. Defaults to ``settings.revert_failed_reorder``.
    """

    def __init__(
        self,
        client: CourseApiClient,
        course_id: str,
        *,
        notifier: Notifier | None = None,
        revert_failed_reorder: bool | None = None,
    ) -> None:
        self._client = client
        self._course_id = course_id
        self._notify = notifier or LogNotifier()
        self._revert_failed_reorder = (
            settings.revert_failed_reorder
            if revert_failed_reorder is None
            else revert_failed_reorder
        )
        self._modules: OrderedCollection[Module] = OrderedCollection()
        self._reorder_generation: dict[str, int] = {}
        self._alive = True
        self._log = logger.bind(course_id=course_id)

    # ── Read access ──

    @property
    def course_id(self) -> str:
        return self._course_id

    @property
    def modules(self) -> list[Module]:
        return self._modules.items

    def module(self, module_id: str) -> Module:
        """Get a module by id.

        Raises:
            NotFoundError: If the module is not in the tree.
        """
        module = self._modules.get(module_id)
        if module is None:
            msg = f"Module not found: {module_id}"
            raise NotFoundError(msg)
        return module

    def item(self, module_id: str, item_id: str) -> Item:
        item = self.module(module_id).find_item(item_id)
        if item is None:
            msg = f"Content item {item_id} not found in module {module_id}"
            raise NotFoundError(msg)
        return item

    def snapshot(self) -> Course:
        return Course(id=self._course_id, modules=self._modules.items)

    # ── Lifecycle ──

    async def load(self) -> list[Module]:
        """Fetch modules and the content of every module.

        Raises:
            TransportError: If any of the requests fails.
        """
        modules = await self._remote(
            "load_modules",
            "Could not load course modules.",
            lambda: self._client.list_modules(self._course_id),
        )
        contents = await self._remote(
            "load_content",
            "Could not load module content.",
            lambda: asyncio.gather(
                *(self._client.list_module_content(m.id) for m in modules)
            ),
        )
        if not self._alive:
            self._log.debug("stale_response_ignored", operation="load")
            return self.modules

        self._modules = OrderedCollection(
            _with_items(m, items) for m, items in zip(modules, contents, strict=True)
        )
        self._log.info(
            "hierarchy_loaded",
            module_count=len(self._modules),
            item_count=sum(len(m.items) for m in self._modules),
        )
        return self.modules

    def close(self) -> None:
        """Tear down: responses still in flight will not be applied."""
        self._alive = False

    # ── Modules ──

    async def create_module(self, title: str) -> Module:
        """Create a module at the end of the course.

        Raises:
            ValidationError: If ``title`` is blank (no request is sent).
            TransportError: If the remote write fails (nothing changes).
        """
        title = _clean_title(title)
        created = await self._remote(
            "create_module",
            "Could not create the module.",
            lambda: self._client.create_module(self._course_id, title),
        )
        if not self._alive:
            return created

        self._modules = self._modules.appended(_with_items(created, created.items))
        module = self._modules[len(self._modules) - 1]
        self._log.info("module_created", module_id=module.id, order=module.order_index)
        self._notify(NoticeLevel.SUCCESS, "Module created.")
        return module

    async def rename_module(self, module_id: str, title: str) -> Module:
        title = _clean_title(title)
        self.module(module_id)
        updated = await self._remote(
            "rename_module",
            "Could not rename the module.",
            lambda: self._client.rename_module(self._course_id, module_id, title),
        )
        current = self._modules.get(module_id)
        if not self._alive or current is None:
            return updated

        module = current.model_copy(
            update={"title": updated.title or title}
        )
        self._modules = self._modules.replaced(module)
        self._log.info("module_renamed", module_id=module_id)
        return module

    async def delete_module(self, module_id: str) -> None:
        """Delete a module and, with it, all of its content items."""
        self.module(module_id)
        await self._remote(
            "delete_module",
            "Could not delete the module.",
            lambda: self._client.delete_module(self._course_id, module_id),
        )
        if not self._alive:
            return

        if self._modules.get(module_id) is not None:
            self._modules = self._modules.without(module_id)
        self._log.info("module_deleted", module_id=module_id)
        self._notify(NoticeLevel.SUCCESS, "Module deleted.")

    async def move_module(self, from_index: int, to_index: int) -> bool:
        """Drag a module from one position to another.

        Returns:
            ``True`` if the new order was persisted (or nothing moved).
        """
        new_order = self._modules.move_to(from_index, to_index)
        if new_order is self._modules:
            return True
        return await self._persist_module_order(new_order)

    async def reorder_modules(self, ordered_ids: Sequence[str]) -> bool:
        """Apply a complete module order given as ids.

        Raises:
            NotFoundError: If ``ordered_ids`` does not match the current
                modules exactly (local state is left untouched).
        """
        new_order = self._modules.reordered(ordered_ids)
        if new_order.ids() == self._modules.ids():
            return True
        return await self._persist_module_order(new_order)

    # ── Module content ──

    async def add_material(self, module_id: str, draft: MaterialDraft) -> Material:
        self.module(module_id)
        created = await self._remote(
            "create_material",
            "Could not create the material.",
            lambda: self._client.create_material(module_id, draft),
        )
        return self._append_item(module_id, created)

    async def add_evaluation(
        self, module_id: str, draft: EvaluationDraft
    ) -> Evaluation:
        self.module(module_id)
        created = await self._remote(
            "create_evaluation",
            "Could not create the evaluation.",
            lambda: self._client.create_evaluation(module_id, draft),
        )
        return self._append_item(module_id, created)

    async def rename_item(self, module_id: str, item_id: str, title: str) -> Item:
        title = _clean_title(title)
        current = self.item(module_id, item_id)
        updated = await self._remote(
            "rename_item",
            "Could not rename the content item.",
            lambda: self._client.rename_item(module_id, item_id, current.kind, title),
        )
        module = self._modules.get(module_id)
        existing = module.find_item(item_id) if module is not None else None
        if not self._alive or module is None or existing is None:
            return updated

        items = OrderedCollection(module.items)
        item = existing.model_copy(update={"title": updated.title or title})
        self._set_items(module_id, items.replaced(item))
        self._log.info("item_renamed", module_id=module_id, item_id=item_id)
        return item

    async def delete_item(self, module_id: str, item_id: str) -> None:
        current = self.item(module_id, item_id)
        await self._remote(
            "delete_item",
            "Could not delete the content item.",
            lambda: self._client.delete_item(module_id, item_id, current.kind),
        )
        module = self._modules.get(module_id)
        if not self._alive or module is None:
            return

        items = OrderedCollection(module.items)
        if items.get(item_id) is not None:
            self._set_items(module_id, items.without(item_id))
        self._log.info("item_deleted", module_id=module_id, item_id=item_id)
        self._notify(NoticeLevel.SUCCESS, "Content deleted.")

    async def move_item(self, module_id: str, from_index: int, to_index: int) -> bool:
        items = OrderedCollection(self.module(module_id).items)
        new_order = items.move_to(from_index, to_index)
        if new_order is items:
            return True
        return await self._persist_item_order(module_id, new_order)

    async def reorder_items(
        self,
        module_id: str,
        ordered_entries: Sequence[Mapping[str, str]],
    ) -> bool:
        """Apply a complete content order given as ``{id, kind}`` entries.

        Raises:
            NotFoundError: If an entry references an item that is no
                longer in the module, or with the wrong kind.
        """
        items = OrderedCollection(self.module(module_id).items)
        for entry in ordered_entries:
            item_id, kind = entry.get("id"), entry.get("kind")
            item = None if item_id is None else items.get(item_id)
            if item is None or item.kind != kind:
                msg = f"Content item {item_id} ({kind}) not in module"
                raise NotFoundError(msg)
        new_order = items.reordered([entry["id"] for entry in ordered_entries])
        if new_order.ids() == items.ids():
            return True
        return await self._persist_item_order(module_id, new_order)

    # ── Private helpers ──

    async def _remote(
        self,
        operation: str,
        failure_message: str,
        call: Callable[[], Awaitable[R]],
    ) -> R:
        """Run a remote call; on failure notify the user and re-raise."""
        try:
            with course_context(self._course_id):
                return await call()
        except SequencerError as exc:
            self._log.warning(f"{operation}_failed", error=str(exc))
            if self._alive:
                self._notify(NoticeLevel.ERROR, failure_message)
            raise

    async def _persist_module_order(self, new_order: OrderedCollection[Module]) -> bool:
        previous_ids = self._modules.ids()
        self._modules = new_order
        generation = self._bump_generation("modules")
        self._log.info("modules_reordered", order=new_order.ids())

        ok = await self._persist_order(
            "modules",
            lambda: self._client.reorder_modules(self._course_id, new_order.payload()),
        )
        if not ok and self._should_revert("modules", generation):
            # Re-apply the old order to the current tree
            self._modules = self._modules.arranged_like(previous_ids)
            self._log.info("modules_reorder_reverted", order=self._modules.ids())
        return ok

    async def _persist_item_order(
        self, module_id: str, new_order: OrderedCollection[Any]
    ) -> bool:
        previous_ids = OrderedCollection(self.module(module_id).items).ids()
        self._set_items(module_id, new_order)
        generation = self._bump_generation(module_id)
        self._log.info("items_reordered", module_id=module_id, order=new_order.ids())

        ok = await self._persist_order(
            module_id,
            lambda: self._client.reorder_module_content(module_id, new_order.payload()),
        )
        if (
            not ok
            and self._should_revert(module_id, generation)
            and self._modules.get(module_id) is not None
        ):
            current = OrderedCollection(self.module(module_id).items)
            self._set_items(module_id, current.arranged_like(previous_ids))
            self._log.info("items_reorder_reverted", module_id=module_id)
        return ok

    async def _persist_order(
        self, scope: str, call: Callable[[], Awaitable[None]]
    ) -> bool:
        try:
            with course_context(self._course_id):
                await call()
        except (TransportError, NotFoundError) as exc:
            self._log.warning("reorder_persist_failed", scope=scope, error=str(exc))
            if self._alive:
                self._notify(NoticeLevel.ERROR, "Could not save the new order.")
            return False
        return True

    def _bump_generation(self, scope: str) -> int:
        generation = self._reorder_generation.get(scope, 0) + 1
        self._reorder_generation[scope] = generation
        return generation

    def _should_revert(self, scope: str, generation: int) -> bool:
        # A newer reorder of the same scope supersedes this one.
        return (
            self._alive
            and self._revert_failed_reorder
            and self._reorder_generation.get(scope) == generation
        )

    def _set_items(self, module_id: str, items: OrderedCollection[Any]) -> None:
        module = self.module(module_id)
        self._modules = self._modules.replaced(_with_items(module, items.items))

    def _append_item(self, module_id: str, created: I) -> I:
        if not self._alive or self._modules.get(module_id) is None:
            return created
        items = OrderedCollection(self.module(module_id).items).appended(created)
        self._set_items(module_id, items)
        appended = items[len(items) - 1]
        self._log.info(
            "item_created",
            module_id=module_id,
            item_id=appended.id,
            kind=str(appended.kind),
        )
        self._notify(NoticeLevel.SUCCESS, "Content created.")
        return appended


def _with_items(module: Module, items: Sequence[Item]) -> Module:
    """Copy of ``module`` holding ``items`` in normalised order."""
    return module.model_copy(update={"items": OrderedCollection(items).items})
