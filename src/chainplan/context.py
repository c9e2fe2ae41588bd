"""Per-call carrier of a pipeline's input and output values."""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class Context[TIn, TOut](Protocol):
    """Capability handlers rely on: read-only input, read/write output."""

    @property
    def input(self) -> TIn: ...  # noqa: D102

    @property
    def output(self) -> TOut | None: ...  # noqa: D102

    @output.setter
    def output(self, value: TOut | None) -> None: ...


class ExecutionContext[TIn, TOut]:
    """Input/output pair for a single traversal of a handler chain.

    The input is fixed at construction. The output starts as ``None`` and is
    overwritten in place by handlers as the context travels down the chain.
    """

    __slots__ = ("_input", "_output")

    def __init__(self, input: TIn) -> None:  # noqa: A002
        self._input = input
        self._output: TOut | None = None

    @property
    def input(self) -> TIn:
        """The value the plan was executed with."""
        return self._input

    @property
    def output(self) -> TOut | None:
        """The current result; ``None`` until a handler sets it."""
        return self._output

    @output.setter
    def output(self, value: TOut | None) -> None:
        self._output = value

    def __repr__(self) -> str:
        return f"ExecutionContext(input={self._input!r}, output={self._output!r})"
