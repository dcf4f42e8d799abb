"""Authoring input for new materials and evaluations.

Drafts validate on construction, so an invalid draft never reaches
the network.
"""

from typing import Self

from pydantic import Field, field_validator, model_validator

from course_sequencer.models.content import (
    MAX_ANSWERS,
    MIN_ANSWERS,
    MediaType,
    WireModel,
)


def _require_text(value: str, what: str) -> str:
    if not value.strip():
        msg = f"{what} must not be blank"
        raise ValueError(msg)
    return value.strip()


class MaterialDraft(WireModel):
    """New video, PDF or text material.

    Video and PDF materials need an external URL in ``content``;
    text materials need non-blank inline ``content``.
    """

    title: str
    media_type: MediaType
    content: str = ""
    subtitles_url: str | None = None

    @field_validator("title")
    @classmethod
    def _title_not_blank(cls, value: str) -> str:
        return _require_text(value, "Title")

    @model_validator(mode="after")
    def _content_matches_media_type(self) -> Self:
        if not self.content.strip():
            if self.media_type == MediaType.TEXT:
                raise ValueError("Text material content must not be blank")
            raise ValueError(f"A {self.media_type} material needs a URL")
        if self.subtitles_url is not None and self.media_type != MediaType.VIDEO:
            raise ValueError("Subtitles are only supported for video materials")
        return self


class AnswerDraft(WireModel):
    text: str
    is_correct: bool = False


class QuestionDraft(WireModel):
    text: str
    answers: list[AnswerDraft] = Field(min_length=MIN_ANSWERS, max_length=MAX_ANSWERS)

    @field_validator("text")
    @classmethod
    def _text_not_blank(cls, value: str) -> str:
        return _require_text(value, "Question text")

    @model_validator(mode="after")
    def _exactly_one_correct(self) -> Self:
        correct = sum(1 for a in self.answers if a.is_correct)
        if correct != 1:
            msg = f"Exactly one answer must be correct, got {correct}"
            raise ValueError(msg)
        return self


class EvaluationDraft(WireModel):
    """New evaluation with its questions and reinforcement materials."""

    title: str
    questions: list[QuestionDraft] = Field(min_length=1)
    reinforcement_ids: list[str] = Field(default_factory=list)

    @field_validator("title")
    @classmethod
    def _title_not_blank(cls, value: str) -> str:
        return _require_text(value, "Title")
