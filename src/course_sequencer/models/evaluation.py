"""Evaluation submission and grading schemas."""

from pydantic import Field

from course_sequencer.models.content import MaterialRef, WireModel


class AnswerChoice(WireModel):
    """One ``{questionId, chosenAnswerId}`` pair of a submission."""

    question_id: str
    chosen_answer_id: str


class EvaluationSubmission(WireModel):
    answers: list[AnswerChoice]

    @classmethod
    def from_attempt(cls, attempt: dict[str, str]) -> "EvaluationSubmission":
        """Build the submission body from a question_id -> answer_id mapping."""
        return cls(
            answers=[
                AnswerChoice(question_id=q_id, chosen_answer_id=a_id)
                for q_id, a_id in attempt.items()
            ]
        )


class EvaluationResult(WireModel):
    """Grading returned by the server.

    ``reinforcement`` lists the Materials suggested for the questions
    answered incorrectly (empty when none are configured).
    """

    score: float
    feedback: str = ""
    reinforcement: list[MaterialRef] = Field(default_factory=list)

    def is_passing(self, pass_score: float) -> bool:
        """Presentation-only pass/fail; never gates navigation."""
        return self.score >= pass_score
