"""Failure taxonomy raised by the execution engine."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from src.models.test_result import TestResult


class EngineError(Exception):
    """Base class for failures detected while driving a page."""

    @property
    def kind(self) -> str:
        return type(self).__name__


class ElementNotFound(EngineError):
    pass


class UnknownSelectorStrategy(EngineError):
    pass


class ValueMismatch(EngineError):
    pass


class AssertionFailed(EngineError):
    pass


class DialogKindMismatch(EngineError):
    pass


class DialogNotTriggered(EngineError):
    pass


class DialogCountMismatch(EngineError):
    pass


class UnknownStepKind(EngineError):
    pass


class NavigationTimeout(EngineError):
    pass


class UnexpectedDialog(EngineError):
    """A dialog appeared while no dialog step was declared."""


class RunAborted(Exception):
    """Raised when stop_on_failure halts the whole run.

    Carries the failed result so the caller can still record it.
    """

    def __init__(self, result: "TestResult"):
        super().__init__(f"Run aborted after failure of '{result.name}': {result.error}")
        self.result = result


def error_kind(exc: BaseException) -> str:
    """Name recorded in TestResult.error_kind for any exception."""
    return exc.kind if isinstance(exc, EngineError) else type(exc).__name__
