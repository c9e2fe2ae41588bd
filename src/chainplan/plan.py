"""Execution plan: an ordered, index-addressable chain of handlers.

The plan keeps two structures in step: its own ordered sequence (used for
indexed mutation, membership checks and enumeration) and each handler's
``next_handler`` link (which is what execution actually follows). Insertions
update both. Removals and ``clear_handlers`` only touch the sequence; the
former neighbours keep their links until the caller re-links them, e.g. with
``relink_handlers()``.

Example:
    plan = ExecutionPlan[str, str]()
    plan.append_handler(Exclaim())
    plan.append_handler(Question())
    plan.execute("Hello")
"""

from __future__ import annotations

from collections.abc import Iterator
from itertools import pairwise
import logging
from typing import TYPE_CHECKING, ClassVar
import weakref

from chainplan.config import Settings, resolve_settings
from chainplan.context import ExecutionContext
from chainplan.errors import (
    DuplicateMembershipError,
    EmptyPipelineError,
    HandlerNotFoundError,
    IndexOutOfRangeError,
    InvalidArgumentError,
    LinkageError,
)
from chainplan.telemetry import build_telemetry

if TYPE_CHECKING:
    from chainplan.handler import Handler
    from chainplan.telemetry import TelemetryReporter

log = logging.getLogger(__name__)

_RELINK_HINT = "Call relink_handlers() after removing handlers to restore the chain."


def _name(handler: object) -> str:
    return type(handler).__name__


class ExecutionPlan[TIn, TOut]:
    """Owns an ordered set of handlers and drives execution from the first.

    A handler instance may appear at most once in a plan and may belong to at
    most one live plan at a time. Membership is by identity, never equality.
    """

    _live_plans: ClassVar[weakref.WeakSet[ExecutionPlan]] = weakref.WeakSet()

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        reporters: tuple[TelemetryReporter, ...] = (),
    ) -> None:
        """Create an empty plan.

        Args:
            settings: Resolved settings; ``resolve_settings()`` is used when omitted.
            reporters: Telemetry reporters used when telemetry is enabled.
        """
        self._settings = settings if settings is not None else resolve_settings()
        self._handlers: list[Handler[TIn, TOut]] = []
        self._telemetry = build_telemetry(
            reporters, enabled=self._settings.telemetry_enabled or None
        )
        ExecutionPlan._live_plans.add(self)

    # --- Read access ---

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def telemetry_reporters(self) -> tuple[TelemetryReporter, ...]:
        """Reporters receiving execution telemetry; empty when it is disabled."""
        return self._telemetry.reporters

    @property
    def handlers(self) -> tuple[Handler[TIn, TOut], ...]:
        """Read-only snapshot of the handlers in execution order."""
        return tuple(self._handlers)

    @property
    def handler_count(self) -> int:
        return len(self._handlers)

    def __len__(self) -> int:
        return len(self._handlers)

    def __iter__(self) -> Iterator[Handler[TIn, TOut]]:
        return iter(tuple(self._handlers))

    def __contains__(self, handler: object) -> bool:
        return self._index_of(handler) != -1

    def __repr__(self) -> str:
        names = ", ".join(_name(h) for h in self._handlers)
        return f"ExecutionPlan(handlers=[{names}])"

    def _index_of(self, handler: object) -> int:
        for i, h in enumerate(self._handlers):
            if h is handler:
                return i
        return -1

    def _owner_of(self, handler: object) -> ExecutionPlan | None:
        for plan in list(ExecutionPlan._live_plans):
            if plan is not self and plan._index_of(handler) != -1:
                return plan
        return None

    # --- Removal (no re-linking) ---

    def remove_handler_at(self, index: int) -> None:
        """Remove the handler at ``index``.

        Neighbouring links are left untouched: the predecessor still forwards
        to the removed handler until the caller re-links the chain.

        Raises:
            IndexOutOfRangeError: Unless ``0 <= index < handler_count``.
        """
        size = len(self._handlers)
        if index < 0 or index >= size:
            raise IndexOutOfRangeError(
                f"index {index} is out of range for {size} handler(s)",
                index=index,
                size=size,
            )
        removed = self._handlers.pop(index)
        log.debug("Removed %s at index %d", _name(removed), index)

    def remove_handler(self, handler: Handler[TIn, TOut]) -> None:
        """Remove ``handler`` from the plan.

        Raises:
            HandlerNotFoundError: If ``handler`` is not a member.
        """
        index = self._index_of(handler)
        if index == -1:
            raise HandlerNotFoundError(
                f"{_name(handler)} is not part of this execution plan"
            )
        self.remove_handler_at(index)

    def clear_handlers(self) -> None:
        """Remove every handler without touching any ``next_handler`` link."""
        count = len(self._handlers)
        self._handlers = []
        log.debug("Cleared %d handler(s)", count)

    # --- Insertion (maintains links) ---

    def append_handler(self, handler: Handler[TIn, TOut]) -> None:
        """Insert ``handler`` at the end of the plan."""
        if handler is None:
            raise InvalidArgumentError("handler must not be None")
        self.insert_handler_at(len(self._handlers), handler)

    def prepend_handler(self, handler: Handler[TIn, TOut]) -> None:
        """Insert ``handler`` at the start of the plan."""
        if handler is None:
            raise InvalidArgumentError("handler must not be None")
        self.insert_handler_at(0, handler)

    def add_handler_after(
        self, handler: Handler[TIn, TOut], new_handler: Handler[TIn, TOut]
    ) -> None:
        """Insert ``new_handler`` immediately after ``handler``."""
        index = self._anchor_index(handler, new_handler)
        self.insert_handler_at(index + 1, new_handler)

    def add_handler_before(
        self, handler: Handler[TIn, TOut], new_handler: Handler[TIn, TOut]
    ) -> None:
        """Insert ``new_handler`` at ``handler``'s position, shifting it right."""
        self.insert_handler_at(self._anchor_index(handler, new_handler), new_handler)

    def _anchor_index(
        self, handler: Handler[TIn, TOut], new_handler: Handler[TIn, TOut]
    ) -> int:
        if handler is None:
            raise InvalidArgumentError("handler must not be None")
        if new_handler is None:
            raise InvalidArgumentError("new_handler must not be None")
        index = self._index_of(handler)
        if index == -1:
            raise HandlerNotFoundError(
                f"{_name(handler)} is not part of this execution plan"
            )
        return index

    def insert_handler_at(self, index: int, handler: Handler[TIn, TOut]) -> None:
        """Insert ``handler`` at ``index`` and link it to its new neighbours.

        The predecessor (if any) is pointed at ``handler`` and ``handler`` is
        pointed at the handler currently at ``index`` (if any). Inserting at
        the tail leaves ``handler.next_handler`` as it was.

        Raises:
            IndexOutOfRangeError: Unless ``0 <= index <= handler_count``.
            InvalidArgumentError: If ``handler`` is None.
            DuplicateMembershipError: If ``handler`` already belongs to this
                or another live plan.
        """
        size = len(self._handlers)
        if index < 0 or index > size:
            raise IndexOutOfRangeError(
                f"index {index} is out of range for insertion into {size} handler(s)",
                index=index,
                size=size,
            )
        if handler is None:
            raise InvalidArgumentError("handler must not be None")
        if self._index_of(handler) != -1:
            raise DuplicateMembershipError(
                f"{_name(handler)} is already part of this execution plan",
                hint="The same instance may only appear in a plan once at a time.",
            )
        if self._owner_of(handler) is not None:
            raise DuplicateMembershipError(
                f"{_name(handler)} already belongs to another execution plan",
                hint="Remove it from the other plan first or use a new instance.",
            )

        # Link the new handler first so a failing setter leaves the plan as it was.
        previous_next = handler.next_handler
        if index < size:
            handler.next_handler = self._handlers[index]
        if index > 0:
            try:
                self._handlers[index - 1].next_handler = handler
            except Exception:
                handler.next_handler = previous_next
                raise
        self._handlers.insert(index, handler)
        log.debug("Inserted %s at index %d", _name(handler), index)

    # --- Explicit link maintenance ---

    def relink_handlers(self, *, keep_tail: bool = False) -> None:
        """Point every handler at its successor in the plan.

        Args:
            keep_tail: Leave the last handler's ``next_handler`` untouched
                instead of clearing it.
        """
        for current, successor in pairwise(self._handlers):
            current.next_handler = successor
        if self._handlers and not keep_tail:
            self._handlers[-1].next_handler = None
        log.debug("Relinked %d handler(s)", len(self._handlers))

    def verify_links(self) -> None:
        """Check that forward links match the plan's ordering.

        Each handler must forward to its successor in the plan. The tail may
        forward outside the plan, but following its chain must not reach a
        member again or loop.

        Raises:
            LinkageError: On the first disagreement or cycle found.
        """
        for i, (current, successor) in enumerate(pairwise(self._handlers)):
            if current.next_handler is not successor:
                actual = current.next_handler
                log.warning(
                    "Handler %s at index %d forwards to %s instead of %s",
                    _name(current),
                    i,
                    _name(actual) if actual is not None else None,
                    _name(successor),
                )
                raise LinkageError(
                    f"handler at index {i} does not forward to index {i + 1}",
                    position=i,
                    hint=_RELINK_HINT,
                )
        if not self._handlers:
            return

        seen = {id(h) for h in self._handlers}
        node = self._handlers[-1].next_handler
        while node is not None:
            if id(node) in seen:
                log.warning("Handler chain beyond the tail loops back")
                raise LinkageError(
                    "handler chain contains a cycle",
                    position=len(self._handlers) - 1,
                    hint=_RELINK_HINT,
                )
            seen.add(id(node))
            node = node.next_handler

    # --- Execution ---

    def _begin(self, input: TIn) -> ExecutionContext[TIn, TOut]:  # noqa: A002
        if not self._handlers:
            raise EmptyPipelineError(
                "pipeline is empty",
                hint="Add at least one handler before executing.",
            )
        if self._settings.validate_links:
            self.verify_links()
        return ExecutionContext(input)

    def execute(self, input: TIn) -> TOut | None:  # noqa: A002
        """Run the chain synchronously from the first handler.

        Returns:
            The context's output after the chain returns.

        Raises:
            EmptyPipelineError: If the plan has no handlers.
        """
        context = self._begin(input)
        head = self._handlers[0]
        log.debug("Executing plan from %s", _name(head))
        telemetry = self._telemetry
        with telemetry.scope(
            "plan.execute", mode="sync", handlers=len(self._handlers), head=_name(head)
        ):
            head.invoke(context)
        telemetry.count("plan.executions", mode="sync")
        return context.output

    async def execute_async(self, input: TIn) -> TOut | None:  # noqa: A002
        """Run the chain asynchronously; resolves once every handler settles.

        Raises:
            EmptyPipelineError: If the plan has no handlers.
        """
        context = self._begin(input)
        head = self._handlers[0]
        log.debug("Executing plan asynchronously from %s", _name(head))
        telemetry = self._telemetry
        with telemetry.scope(
            "plan.execute", mode="async", handlers=len(self._handlers), head=_name(head)
        ):
            await head.invoke_async(context)
        telemetry.count("plan.executions", mode="async")
        return context.output
