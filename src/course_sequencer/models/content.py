"""Course hierarchy schemas: Course -> Module -> ContentItem."""

from __future__ import annotations

from enum import StrEnum
from typing import Annotated, Any, Literal, Self

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from course_sequencer.ordering import normalize_order

#: Bounds on the number of answer options per question.
MIN_ANSWERS = 2
MAX_ANSWERS = 6


class ContentKind(StrEnum):
    """Discriminant of the mixed content list inside a module."""

    MATERIAL = "material"
    EVALUATION = "evaluation"


class MediaType(StrEnum):
    """Media type of a Material."""

    VIDEO = "video"
    PDF = "pdf"
    TEXT = "text"


def coerce_media_type(value: Any) -> MediaType | None:
    """Case-insensitive media type parsing; unknown values become None."""
    if isinstance(value, MediaType) or value is None:
        return value
    if isinstance(value, str):
        try:
            return MediaType(value.strip().lower())
        except ValueError:
            return None
    return None


class WireModel(BaseModel):
    """Base for models exchanged with the course API (camelCase JSON)."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


class Answer(WireModel):
    """Single answer option. ``is_correct`` is never sent to learners."""

    id: str
    text: str = ""
    is_correct: bool = False


class Question(WireModel):
    id: str
    text: str = ""
    answers: list[Answer] = Field(min_length=MIN_ANSWERS, max_length=MAX_ANSWERS)

    @model_validator(mode="after")
    def _at_most_one_correct(self) -> Self:
        correct = sum(1 for a in self.answers if a.is_correct)
        if correct > 1:
            msg = f"Question {self.id} has {correct} answers marked correct"
            raise ValueError(msg)
        return self

    def has_answer(self, answer_id: str) -> bool:
        return any(a.id == answer_id for a in self.answers)


class MaterialRef(WireModel):
    """Reference to a reinforcement Material suggested after a wrong answer."""

    id: str
    title: str = ""
    media_type: MediaType | None = None

    @field_validator("media_type", mode="before")
    @classmethod
    def _coerce_media_type(cls, value: Any) -> MediaType | None:
        return coerce_media_type(value)


class Material(WireModel):
    """Video, PDF or text lesson.

    ``content`` is a URL for video/pdf and inline text for text materials.
    An unrecognised ``media_type`` loads as ``None`` and is rendered as
    plain text.
    """

    kind: Literal["material"] = "material"
    id: str
    title: str = ""
    order_index: int = 0
    media_type: MediaType | None = None
    content: str = ""
    subtitles_url: str | None = None

    @field_validator("media_type", mode="before")
    @classmethod
    def _coerce_media_type(cls, value: Any) -> MediaType | None:
        return coerce_media_type(value)

    def order_entry(self) -> dict[str, str]:
        return {"id": self.id, "kind": ContentKind.MATERIAL.value}


class Evaluation(WireModel):
    """Assessment item. Questions are only present on the detail payload."""

    kind: Literal["evaluation"] = "evaluation"
    id: str
    title: str = ""
    order_index: int = 0
    questions: list[Question] = Field(default_factory=list)
    reinforcement: list[MaterialRef] = Field(default_factory=list)

    def order_entry(self) -> dict[str, str]:
        return {"id": self.id, "kind": ContentKind.EVALUATION.value}

    def question(self, question_id: str) -> Question | None:
        for q in self.questions:
            if q.id == question_id:
                return q
        return None


ContentItem = Annotated[Material | Evaluation, Field(discriminator="kind")]


class Module(WireModel):
    """Ordered group of content items inside a course.

    Items are normalised on construction: sorted by ``(order_index, id)``
    and re-indexed densely from 0.
    """

    id: str
    title: str = ""
    order_index: int = 0
    items: list[ContentItem] = Field(default_factory=list)

    @model_validator(mode="after")
    def _normalize_items(self) -> Self:
        self.items = normalize_order(self.items)
        return self

    def order_entry(self) -> str:
        return self.id

    def find_item(self, item_id: str) -> Material | Evaluation | None:
        for item in self.items:
            if item.id == item_id:
                return item
        return None


class Course(WireModel):
    id: str
    title: str = ""
    modules: list[Module] = Field(default_factory=list)

    @model_validator(mode="after")
    def _normalize_modules(self) -> Self:
        self.modules = normalize_order(self.modules)
        return self
