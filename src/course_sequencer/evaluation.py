"""Evaluation lifecycle: NOT_STARTED -> IN_PROGRESS -> GRADED.

The only way out of GRADED is ``retry()``, which discards the attempt
and the result. ``reset()`` (the learner navigated away) drops any
state silently; an attempt is never resumed mid-flight.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Protocol

import structlog

from course_sequencer.config import settings
from course_sequencer.errors import InvalidTransitionError, ValidationError
from course_sequencer.models.content import Evaluation
from course_sequencer.models.evaluation import (
    EvaluationResult,
    EvaluationSubmission,
)

logger = structlog.get_logger()


class EvaluationState(StrEnum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    GRADED = "graded"


# Valid lifecycle transitions (reset() bypasses the table)
EVALUATION_TRANSITIONS: dict[EvaluationState, set[EvaluationState]] = {
    EvaluationState.NOT_STARTED: {EvaluationState.IN_PROGRESS},
    EvaluationState.IN_PROGRESS: {EvaluationState.GRADED},
    EvaluationState.GRADED: {EvaluationState.NOT_STARTED},  # retry
}


class EvaluationApi(Protocol):
    async def get_evaluation(
        self, module_id: str, evaluation_id: str
    ) -> Evaluation: ...

    async def submit_evaluation(
        self,
        module_id: str,
        evaluation_id: str,
        submission: EvaluationSubmission,
    ) -> EvaluationResult: ...


class EvaluationLifecycle:
    """State of one learner's attempt at one evaluation.

    The attempt (question id -> chosen answer id) lives in memory only
    and exists only while IN_PROGRESS.
    """

    def __init__(
        self,
        client: EvaluationApi,
        *,
        module_id: str,
        evaluation_id: str,
        pass_score: float | None = None,
    ) -> None:
        self._client = client
        self._module_id = module_id
        self._evaluation_id = evaluation_id
        self._pass_score = settings.pass_score if pass_score is None else pass_score
        self._state = EvaluationState.NOT_STARTED
        self._evaluation: Evaluation | None = None
        self._answers: dict[str, str] = {}
        self._result: EvaluationResult | None = None
        self._attempt = 0
        self._submitting = False
        self._alive = True
        self._log = logger.bind(module_id=module_id, evaluation_id=evaluation_id)

    @property
    def evaluation_id(self) -> str:
        return self._evaluation_id

    @property
    def state(self) -> EvaluationState:
        return self._state

    @property
    def evaluation(self) -> Evaluation | None:
        return self._evaluation

    @property
    def answers(self) -> dict[str, str]:
        return dict(self._answers)

    @property
    def result(self) -> EvaluationResult | None:
        return self._result

    @property
    def passed(self) -> bool | None:
        """Pass/fail for display; ``None`` until graded."""
        if self._result is None:
            return None
        return self._result.is_passing(self._pass_score)

    async def load(self) -> Evaluation | None:
        """Fetch questions and answers.

        Returns:
            The evaluation, or ``None`` if the lifecycle was closed
            while the request was in flight.

        Raises:
            TransportError: On network failure (state is unchanged).
        """
        evaluation = await self._client.get_evaluation(
            self._module_id, self._evaluation_id
        )
        if not self._alive:
            self._log.debug("stale_response_ignored", operation="load")
            return None
        self._evaluation = evaluation
        self._log.info("evaluation_loaded", question_count=len(evaluation.questions))
        return evaluation

    def begin(self) -> None:
        """Start an attempt; the question list must already be loaded."""
        if not self._require_evaluation().questions:
            raise InvalidTransitionError(
                f"Evaluation {self._evaluation_id} has no questions"
            )
        self._transition(EvaluationState.IN_PROGRESS)
        self._answers = {}

    def select_answer(self, question_id: str, answer_id: str) -> None:
        if self._state != EvaluationState.IN_PROGRESS:
            raise InvalidTransitionError(
                f"Cannot answer while evaluation is {self._state}"
            )
        question = self._require_evaluation().question(question_id)
        if question is None:
            raise ValidationError(f"Unknown question: {question_id}")
        if not question.has_answer(answer_id):
            raise ValidationError(
                f"Answer {answer_id} does not belong to question {question_id}"
            )
        self._answers[question_id] = answer_id

    def unanswered(self) -> list[str]:
        if self._evaluation is None:
            return []
        return [q.id for q in self._evaluation.questions if q.id not in self._answers]

    async def submit(self) -> EvaluationResult | None:
        """Send the attempt for grading.

        Returns:
            The result, or ``None`` if the learner navigated away (or
            retried) while the request was in flight.

        Raises:
            InvalidTransitionError: If not IN_PROGRESS, or a submission
                is already in flight.
            ValidationError: If any question is unanswered (state
                stays IN_PROGRESS).
            TransportError: On network failure; the attempt is kept so
                no answers are lost.
        """
        if self._state != EvaluationState.IN_PROGRESS or self._submitting:
            raise InvalidTransitionError(
                f"Cannot submit while evaluation is {self._state}"
            )
        missing = self.unanswered()
        if missing:
            raise ValidationError(
                f"{len(missing)} question(s) unanswered: {', '.join(missing)}"
            )

        attempt = self._attempt
        questions = self._require_evaluation().questions
        ordered = {q.id: self._answers[q.id] for q in questions}
        self._submitting = True
        try:
            result = await self._client.submit_evaluation(
                self._module_id,
                self._evaluation_id,
                EvaluationSubmission.from_attempt(ordered),
            )
        finally:
            # Only the current attempt owns the flag
            if attempt == self._attempt:
                self._submitting = False

        if not self._alive or attempt != self._attempt:
            self._log.debug("stale_response_ignored", operation="submit")
            return None

        self._result = result
        self._transition(EvaluationState.GRADED)
        self._log.info(
            "evaluation_graded",
            score=result.score,
            passed=self.passed,
            reinforcement_count=len(result.reinforcement),
        )
        return result

    def retry(self) -> None:
        """Discard the graded attempt and start over from NOT_STARTED."""
        self._transition(EvaluationState.NOT_STARTED)
        self._discard_attempt()

    def reset(self) -> None:
        """Silently return to NOT_STARTED (learner navigated away)."""
        if self._state != EvaluationState.NOT_STARTED:
            self._log.debug("evaluation_reset", from_state=str(self._state))
        self._state = EvaluationState.NOT_STARTED
        self._discard_attempt()

    def close(self) -> None:
        """Reset and ignore any response still in flight."""
        self._alive = False
        self.reset()

    # ── Private helpers ──

    def _transition(self, target: EvaluationState) -> None:
        if target not in EVALUATION_TRANSITIONS[self._state]:
            raise InvalidTransitionError(
                f"Invalid evaluation transition: {self._state} -> {target}"
            )
        self._state = target

    def _require_evaluation(self) -> Evaluation:
        if self._evaluation is None:
            raise InvalidTransitionError(
                f"Evaluation {self._evaluation_id} questions are not loaded"
            )
        return self._evaluation

    def _discard_attempt(self) -> None:
        self._answers = {}
        self._result = None
        self._attempt += 1
        self._submitting = False
