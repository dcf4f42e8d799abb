"""Domain-specific exceptions for course-sequencer."""

from __future__ import annotations


class SequencerError(Exception):
    """Base class for all course-sequencer errors."""


class ValidationError(SequencerError):
    """Input rejected before reaching the network.

    Blank titles, incomplete evaluation submissions and answers that do
    not belong to the evaluation being taken.
    """


class NotFoundError(SequencerError):
    """A referenced module, content item or evaluation does not exist."""


class TransportError(SequencerError):
    """Network failure, timeout, error status or malformed payload."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class InvalidTransitionError(SequencerError):
    """Evaluation lifecycle transition not allowed from the current state."""
