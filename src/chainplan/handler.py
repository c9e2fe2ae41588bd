"""Pipeline handlers: units of work that forward a context down a chain.

Extension authors subclass ``PipelineHandler`` and override ``invoke`` and/or
``invoke_async``. Forwarding is explicit: an override does its own work and
then calls ``forward``/``forward_async`` (or ``super()``), in whichever order
it needs. Anything that satisfies the ``Handler`` protocol can be placed in an
``ExecutionPlan``.
"""

from __future__ import annotations

import inspect
import logging
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from chainplan.errors import InvalidArgumentError

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from chainplan.context import Context

log = logging.getLogger(__name__)


@runtime_checkable
class Handler[TIn, TOut](Protocol):
    """Capability an ``ExecutionPlan`` needs to link and execute a handler."""

    @property
    def next_handler(self) -> Handler[TIn, TOut] | None: ...  # noqa: D102

    @next_handler.setter
    def next_handler(self, value: Handler[TIn, TOut] | None) -> None: ...

    def invoke(self, context: Context[TIn, TOut]) -> None: ...  # noqa: D102

    async def invoke_async(self, context: Context[TIn, TOut]) -> None: ...  # noqa: D102


def _require_context(context: object) -> None:
    if context is None:
        raise InvalidArgumentError(
            "context must not be None",
            hint="Handlers are normally invoked by ExecutionPlan.execute().",
        )


class PipelineHandler[TIn, TOut]:
    """Base handler that validates the context and forwards it.

    On its own the base handler does no work: ``invoke`` checks the context
    and passes it to ``next_handler`` if there is one. A handler with no next
    handler is terminal and simply returns.
    """

    def __init__(self, next_handler: Handler[TIn, TOut] | None = None) -> None:
        self._next = next_handler

    @property
    def next_handler(self) -> Handler[TIn, TOut] | None:
        """The handler this one forwards to, or ``None`` when terminal."""
        return self._next

    @next_handler.setter
    def next_handler(self, value: Handler[TIn, TOut] | None) -> None:
        # No cycle detection here; see ExecutionPlan.verify_links().
        self._next = value

    def invoke(self, context: Context[TIn, TOut]) -> None:
        """Process ``context`` and forward it to the next handler."""
        _require_context(context)
        self.forward(context)

    async def invoke_async(self, context: Context[TIn, TOut]) -> None:
        """Asynchronously process ``context`` and forward it."""
        _require_context(context)
        await self.forward_async(context)

    def forward(self, context: Context[TIn, TOut]) -> None:
        """Pass ``context`` to the next handler, if any."""
        if self._next is not None:
            self._next.invoke(context)

    async def forward_async(self, context: Context[TIn, TOut]) -> None:
        """Await the next handler's asynchronous invocation, if any."""
        if self._next is not None:
            await self._next.invoke_async(context)

    def __repr__(self) -> str:
        nxt = type(self._next).__name__ if self._next is not None else None
        return f"{type(self).__name__}(next_handler={nxt})"


class CallableHandler[TIn, TOut](PipelineHandler[TIn, TOut]):
    """Adapt a plain function or coroutine function into a handler.

    ``func`` receives the context, does its work, and returns nothing; the
    adapter then forwards. Coroutine functions are only usable through the
    asynchronous path.

    Example:
        shout = CallableHandler(lambda ctx: setattr(ctx, "output", ctx.input.upper()))
    """

    def __init__(
        self,
        func: Callable[[Context[TIn, TOut]], Awaitable[Any] | None],
        *,
        next_handler: Handler[TIn, TOut] | None = None,
        name: str | None = None,
    ) -> None:
        if func is None:
            raise InvalidArgumentError("func must not be None")
        super().__init__(next_handler)
        self._func = func
        self._is_coroutine = inspect.iscoroutinefunction(func)
        self.name = name or getattr(func, "__name__", type(func).__name__)

    def invoke(self, context: Context[TIn, TOut]) -> None:
        """Run the wrapped function, then forward."""
        _require_context(context)
        if self._is_coroutine:
            raise InvalidArgumentError(
                f"handler {self.name!r} wraps a coroutine function",
                hint="Use ExecutionPlan.execute_async() for asynchronous handlers.",
            )
        self._func(context)
        self.forward(context)

    async def invoke_async(self, context: Context[TIn, TOut]) -> None:
        """Run (and await, when needed) the wrapped function, then forward."""
        _require_context(context)
        result = self._func(context)
        if inspect.isawaitable(result):
            await result
        await self.forward_async(context)

    def __repr__(self) -> str:
        return f"CallableHandler(name={self.name!r})"
