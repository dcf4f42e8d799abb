"""Tests for the evaluation lifecycle state machine."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import pytest

from course_sequencer.errors import (
    InvalidTransitionError,
    TransportError,
    ValidationError,
)
from course_sequencer.evaluation import (
    EVALUATION_TRANSITIONS,
    EvaluationLifecycle,
    EvaluationState,
)
from course_sequencer.models.content import Evaluation
from course_sequencer.models.evaluation import EvaluationResult, EvaluationSubmission


def _evaluation(question_count: int = 2) -> Evaluation:
    return Evaluation.model_validate(
        {
            "id": "quiz",
            "questions": [
                {
                    "id": f"q{n}",
                    "text": f"Question {n}",
                    "answers": [{"id": f"q{n}-a"}, {"id": f"q{n}-b"}],
                }
                for n in range(question_count)
            ],
        }
    )


def _client(
    evaluation: Evaluation | None = None, score: float = 100
) -> AsyncMock:
    client = AsyncMock()
    client.get_evaluation.return_value = (
        _evaluation() if evaluation is None else evaluation
    )
    client.submit_evaluation.return_value = EvaluationResult(score=score)
    return client


def _lifecycle(client: AsyncMock, pass_score: float = 60) -> EvaluationLifecycle:
    return EvaluationLifecycle(
        client, module_id="mod", evaluation_id="quiz", pass_score=pass_score
    )


async def _in_progress(client: AsyncMock) -> EvaluationLifecycle:
    lifecycle = _lifecycle(client)
    await lifecycle.load()
    lifecycle.begin()
    return lifecycle


class TestTransitionTable:
    def test_graded_only_leaves_via_retry(self) -> None:
        assert EVALUATION_TRANSITIONS[EvaluationState.GRADED] == {
            EvaluationState.NOT_STARTED
        }

    def test_no_skipping_in_progress(self) -> None:
        assert EvaluationState.GRADED not in EVALUATION_TRANSITIONS[
            EvaluationState.NOT_STARTED
        ]


class TestLoadAndBegin:
    async def test_initial_state(self) -> None:
        lifecycle = _lifecycle(_client())
        assert lifecycle.state == EvaluationState.NOT_STARTED
        assert lifecycle.result is None
        assert lifecycle.passed is None

    async def test_load_fetches_questions(self) -> None:
        client = _client()
        lifecycle = _lifecycle(client)
        evaluation = await lifecycle.load()
        client.get_evaluation.assert_awaited_once_with("mod", "quiz")
        assert evaluation is not None
        assert lifecycle.evaluation is evaluation

    async def test_begin_requires_loaded_questions(self) -> None:
        lifecycle = _lifecycle(_client())
        with pytest.raises(InvalidTransitionError, match="not loaded"):
            lifecycle.begin()

    async def test_begin_without_questions_rejected(self) -> None:
        lifecycle = _lifecycle(_client(_evaluation(0)))
        await lifecycle.load()
        with pytest.raises(InvalidTransitionError, match="no questions"):
            lifecycle.begin()

    async def test_begin_twice_rejected(self) -> None:
        lifecycle = await _in_progress(_client())
        with pytest.raises(InvalidTransitionError):
            lifecycle.begin()

    async def test_load_failure_propagates(self) -> None:
        client = _client()
        client.get_evaluation.side_effect = TransportError("down")
        lifecycle = _lifecycle(client)
        with pytest.raises(TransportError):
            await lifecycle.load()
        assert lifecycle.evaluation is None

    async def test_load_after_close_ignored(self) -> None:
        client = _client()
        lifecycle = _lifecycle(client)
        lifecycle.close()
        assert await lifecycle.load() is None
        assert lifecycle.evaluation is None


class TestAnswering:
    async def test_select_answer_records_choice(self) -> None:
        lifecycle = await _in_progress(_client())
        lifecycle.select_answer("q0", "q0-b")
        lifecycle.select_answer("q0", "q0-a")
        assert lifecycle.answers == {"q0": "q0-a"}
        assert lifecycle.unanswered() == ["q1"]

    async def test_select_before_begin_rejected(self) -> None:
        lifecycle = _lifecycle(_client())
        await lifecycle.load()
        with pytest.raises(InvalidTransitionError):
            lifecycle.select_answer("q0", "q0-a")

    async def test_unknown_question_rejected(self) -> None:
        lifecycle = await _in_progress(_client())
        with pytest.raises(ValidationError, match="Unknown question"):
            lifecycle.select_answer("q9", "q0-a")

    async def test_foreign_answer_rejected(self) -> None:
        lifecycle = await _in_progress(_client())
        with pytest.raises(ValidationError, match="does not belong"):
            lifecycle.select_answer("q0", "q1-a")

    async def test_answers_property_is_a_copy(self) -> None:
        lifecycle = await _in_progress(_client())
        lifecycle.answers["q0"] = "tampered"
        assert lifecycle.answers == {}


class TestSubmit:
    async def test_incomplete_submission_rejected(self) -> None:
        """Unanswered questions block submit and keep IN_PROGRESS."""
        client = _client()
        lifecycle = await _in_progress(client)
        lifecycle.select_answer("q0", "q0-a")

        with pytest.raises(ValidationError, match="1 question"):
            await lifecycle.submit()

        assert lifecycle.state == EvaluationState.IN_PROGRESS
        client.submit_evaluation.assert_not_awaited()

    async def test_submit_grades(self) -> None:
        client = _client(score=80)
        lifecycle = await _in_progress(client)
        lifecycle.select_answer("q1", "q1-b")
        lifecycle.select_answer("q0", "q0-a")

        result = await lifecycle.submit()

        assert result is not None
        assert result.score == 80
        assert lifecycle.state == EvaluationState.GRADED
        assert lifecycle.passed is True
        submission = client.submit_evaluation.await_args.args[2]
        assert isinstance(submission, EvaluationSubmission)
        assert [a.question_id for a in submission.answers] == ["q0", "q1"]

    async def test_failing_score(self) -> None:
        client = _client(score=59)
        lifecycle = await _in_progress(client)
        lifecycle.select_answer("q0", "q0-a")
        lifecycle.select_answer("q1", "q1-a")
        await lifecycle.submit()
        assert lifecycle.passed is False

    async def test_submit_twice_rejected(self) -> None:
        lifecycle = await _in_progress(_client())
        lifecycle.select_answer("q0", "q0-a")
        lifecycle.select_answer("q1", "q1-a")
        await lifecycle.submit()
        with pytest.raises(InvalidTransitionError):
            await lifecycle.submit()

    async def test_transport_failure_keeps_attempt(self) -> None:
        client = _client()
        client.submit_evaluation.side_effect = TransportError("timeout")
        lifecycle = await _in_progress(client)
        lifecycle.select_answer("q0", "q0-a")
        lifecycle.select_answer("q1", "q1-a")

        with pytest.raises(TransportError):
            await lifecycle.submit()

        assert lifecycle.state == EvaluationState.IN_PROGRESS
        assert lifecycle.answers == {"q0": "q0-a", "q1": "q1-a"}

    async def test_concurrent_submit_rejected(self) -> None:
        gate = asyncio.Event()
        client = _client()

        async def slow_submit(*args: object) -> EvaluationResult:
            await gate.wait()
            return EvaluationResult(score=100)

        client.submit_evaluation.side_effect = slow_submit
        lifecycle = await _in_progress(client)
        lifecycle.select_answer("q0", "q0-a")
        lifecycle.select_answer("q1", "q1-a")

        first = asyncio.create_task(lifecycle.submit())
        await asyncio.sleep(0)
        with pytest.raises(InvalidTransitionError):
            await lifecycle.submit()
        gate.set()
        assert await first is not None
        assert client.submit_evaluation.await_count == 1

    async def test_result_after_navigation_is_discarded(self) -> None:
        """A grading response arriving after reset is ignored."""
        gate = asyncio.Event()
        client = _client()

        async def slow_submit(*args: object) -> EvaluationResult:
            await gate.wait()
            return EvaluationResult(score=100)

        client.submit_evaluation.side_effect = slow_submit
        lifecycle = await _in_progress(client)
        lifecycle.select_answer("q0", "q0-a")
        lifecycle.select_answer("q1", "q1-a")

        pending = asyncio.create_task(lifecycle.submit())
        await asyncio.sleep(0)
        lifecycle.reset()
        gate.set()

        assert await pending is None
        assert lifecycle.state == EvaluationState.NOT_STARTED
        assert lifecycle.result is None

    async def test_new_attempt_after_reset_can_submit(self) -> None:
        """A stale submission still in flight does not block the next attempt."""
        gate = asyncio.Event()
        client = _client()
        scores = iter([0, 100])

        async def submit(*args: object) -> EvaluationResult:
            score = next(scores)
            if score == 0:
                await gate.wait()
            return EvaluationResult(score=score)

        client.submit_evaluation.side_effect = submit
        lifecycle = await _in_progress(client)
        lifecycle.select_answer("q0", "q0-a")
        lifecycle.select_answer("q1", "q1-a")

        stale = asyncio.create_task(lifecycle.submit())
        await asyncio.sleep(0)
        lifecycle.reset()
        lifecycle.begin()
        lifecycle.select_answer("q0", "q0-b")
        lifecycle.select_answer("q1", "q1-b")

        result = await lifecycle.submit()
        gate.set()

        assert result is not None
        assert result.score == 100
        assert await stale is None
        assert lifecycle.state == EvaluationState.GRADED
        assert lifecycle.result == result


class TestRetryAndReset:
    async def _graded(self) -> EvaluationLifecycle:
        lifecycle = await _in_progress(_client(score=40))
        lifecycle.select_answer("q0", "q0-a")
        lifecycle.select_answer("q1", "q1-a")
        await lifecycle.submit()
        return lifecycle

    async def test_retry_discards_result(self) -> None:
        lifecycle = await self._graded()
        lifecycle.retry()
        assert lifecycle.state == EvaluationState.NOT_STARTED
        assert lifecycle.result is None
        assert lifecycle.answers == {}
        lifecycle.begin()
        assert lifecycle.state == EvaluationState.IN_PROGRESS

    async def test_retry_only_from_graded(self) -> None:
        lifecycle = await _in_progress(_client())
        with pytest.raises(InvalidTransitionError):
            lifecycle.retry()

    async def test_reset_from_any_state(self) -> None:
        lifecycle = await _in_progress(_client())
        lifecycle.select_answer("q0", "q0-a")
        lifecycle.reset()
        assert lifecycle.state == EvaluationState.NOT_STARTED
        assert lifecycle.answers == {}

        graded = await self._graded()
        graded.reset()
        assert graded.state == EvaluationState.NOT_STARTED
        assert graded.result is None
