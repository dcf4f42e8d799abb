"""Pydantic schemas for course-sequencer domain models."""

from course_sequencer.models.content import (
    Answer,
    ContentItem,
    ContentKind,
    Course,
    Evaluation,
    Material,
    MaterialRef,
    MediaType,
    Module,
    Question,
)
from course_sequencer.models.drafts import (
    AnswerDraft,
    EvaluationDraft,
    MaterialDraft,
    QuestionDraft,
)
from course_sequencer.models.evaluation import (
    AnswerChoice,
    EvaluationResult,
    EvaluationSubmission,
)

__all__ = [
    "Answer",
    "AnswerChoice",
    "AnswerDraft",
    "ContentItem",
    "ContentKind",
    "Course",
    "Evaluation",
    "EvaluationDraft",
    "EvaluationResult",
    "EvaluationSubmission",
    "Material",
    "MaterialDraft",
    "MaterialRef",
    "MediaType",
    "Module",
    "Question",
    "QuestionDraft",
]
