from __future__ import annotations


class AssessmentError(Exception):
    """Base class for engine errors surfaced to callers."""


class ValidationError(AssessmentError):
    """Level configuration or test setup cannot produce a usable attempt."""


class NotFoundError(AssessmentError):
    """Unknown test, attempt or question id."""


class StateError(AssessmentError):
    """Submission does not match the attempt's expected next action."""


class AttemptFinishedError(StateError):
    """Attempt is sealed; no further submissions are accepted."""
