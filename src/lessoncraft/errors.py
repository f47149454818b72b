"""Failure taxonomy for the generate/sanitize/validate/repair pipeline."""

from __future__ import annotations

from lessoncraft.models import Violation


class LessonError(RuntimeError):
    """Base class for every failure the pipeline reports to its caller."""


class GenerationFailure(LessonError):
    """The model adapter returned no usable text. Not repairable."""


class ValidationFailure(LessonError):
    def __init__(self, violation: Violation):
        super().__init__(violation.message)
        self.violation = violation


class RepairExhausted(LessonError):
    """Validation still failed after the single structural repair."""

    def __init__(self, first: Violation, second: Violation):
        super().__init__(
            f"Self-repair failed validation: {second.message} "
            f"(initial violation: {first.message})"
        )
        self.first = first
        self.second = second


class RuntimeFailure(LessonError):
    """A runtime error that the feedback loop could not repair."""


class PersistenceFailure(LessonError):
    """The lesson store could not read or write a row."""
