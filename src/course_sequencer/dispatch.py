"""Rendering strategy selection for the active content item."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

import structlog

from course_sequencer.models.content import (
    ContentKind,
    Evaluation,
    Material,
    MediaType,
)
from course_sequencer.video import VideoSource, VideoSourceResolver

logger = structlog.get_logger()

EMPTY_TEXT_PLACEHOLDER = "No content available."


class RenderView(StrEnum):
    """Renderer a frontend should use for an item."""

    ASSESSMENT = "assessment"
    VIDEO = "video"
    DOCUMENT = "document"
    TEXT = "text"


#: Views per material media type. Anything missing renders as text.
MEDIA_VIEWS: dict[MediaType, RenderView] = {
    MediaType.VIDEO: RenderView.VIDEO,
    MediaType.PDF: RenderView.DOCUMENT,
    MediaType.TEXT: RenderView.TEXT,
}


@dataclass(frozen=True, slots=True)
class RenderPlan:
    """Everything a renderer needs for one content item.

    ``video_source`` and ``subtitles_url`` are only set for the video
    view; ``body`` is only set for the text view.
    """

    view: RenderView
    item: Material | Evaluation
    video_source: VideoSource | None = None
    subtitles_url: str | None = None
    body: str | None = None


class ContentTypeDispatcher:
    """Maps a content item to its ``RenderPlan``."""

    def __init__(self, video_resolver: VideoSourceResolver | None = None) -> None:
        self._video_resolver = video_resolver or VideoSourceResolver()

    @staticmethod
    def view_for(item: Material | Evaluation) -> RenderView:
        if item.kind == ContentKind.EVALUATION:
            return RenderView.ASSESSMENT
        if item.media_type is None:
            return RenderView.TEXT
        return MEDIA_VIEWS.get(item.media_type, RenderView.TEXT)

    def dispatch(self, item: Material | Evaluation) -> RenderPlan:
        view = self.view_for(item)

        if isinstance(item, Evaluation):
            return RenderPlan(view=view, item=item)

        if view == RenderView.VIDEO:
            source = self._video_resolver.resolve(item.content)
            logger.debug(
                "video_source_resolved",
                item_id=item.id,
                source=type(source).__name__,
            )
            return RenderPlan(
                view=view,
                item=item,
                video_source=source,
                subtitles_url=item.subtitles_url,
            )

        if view == RenderView.DOCUMENT:
            return RenderPlan(view=view, item=item)

        return RenderPlan(
            view=view,
            item=item,
            body=item.content if item.content.strip() else EMPTY_TEXT_PLACEHOLDER,
        )
