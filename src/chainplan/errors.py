"""Exception hierarchy for chainplan.

Every error is raised synchronously at the precondition it guards and is never
retried by the library. Subclasses also derive from the closest builtin so
callers can catch ``IndexError``/``ValueError``/``LookupError`` generically.
"""

from __future__ import annotations


class ChainplanError(Exception):
    """Base exception for all chainplan errors."""

    def __init__(self, message: str, *, hint: str | None = None) -> None:
        super().__init__(message)
        self.hint = hint


class InvalidArgumentError(ChainplanError, ValueError):
    """A required argument (handler or context) was ``None``."""


class IndexOutOfRangeError(ChainplanError, IndexError):
    """A structural index fell outside the plan's valid range."""

    def __init__(
        self,
        message: str,
        *,
        index: int,
        size: int,
        hint: str | None = None,
    ) -> None:
        super().__init__(message, hint=hint)
        self.index = index
        self.size = size


class HandlerNotFoundError(ChainplanError, LookupError):
    """The referenced handler is not a member of the plan."""


class DuplicateMembershipError(ChainplanError, ValueError):
    """The handler already belongs to this or another execution plan."""


class EmptyPipelineError(ChainplanError):
    """Execution was requested on a plan without handlers."""


class LinkageError(ChainplanError):
    """Handler forward links disagree with the plan's ordering.

    Only raised by explicit verification (``ExecutionPlan.verify_links`` or
    the ``validate_links`` setting); normal execution follows links as-is.
    """

    def __init__(
        self, message: str, *, position: int | None = None, hint: str | None = None
    ) -> None:
        super().__init__(message, hint=hint)
        self.position = position


class ConfigurationError(ChainplanError):
    """Configuration validation or resolution failed."""
