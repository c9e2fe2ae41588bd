"""Opt-in timings and counters for plan executions.

Telemetry is off unless ``Settings.telemetry_enabled`` or the
``CHAINPLAN_TELEMETRY=1`` environment toggle turns it on. A ``Telemetry``
without reporters does nothing, so the execution path pays only for a check.
Scope names nest through a ``ContextVar``; concurrent async executions keep
separate scope paths.
"""

from __future__ import annotations

from collections import deque
from contextlib import contextmanager
from contextvars import ContextVar
import logging
import os
import time
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Iterator

log = logging.getLogger(__name__)

TELEMETRY_ENV_VAR = "CHAINPLAN_TELEMETRY"

_active_scopes: ContextVar[tuple[str, ...]] = ContextVar(
    "chainplan_active_scopes", default=()
)


@runtime_checkable
class TelemetryReporter(Protocol):
    """Receives scope durations and counter increments."""

    def record_timing(self, scope: str, duration: float, **metadata: Any) -> None: ...  # noqa: D102
    def record_metric(self, scope: str, value: Any, **metadata: Any) -> None: ...  # noqa: D102


class Telemetry:
    """Dispatches timings and counters to a fixed set of reporters."""

    __slots__ = ("reporters",)

    def __init__(self, reporters: tuple[TelemetryReporter, ...] = ()) -> None:
        self.reporters = reporters

    @property
    def is_enabled(self) -> bool:
        return bool(self.reporters)

    @contextmanager
    def scope(self, name: str, **metadata: Any) -> Iterator[None]:
        """Time the enclosed block under ``name``.

        The timing carries an ``outcome`` of ``"ok"`` or the name of the
        exception that escaped the block; the exception still propagates.
        """
        if not self.reporters:
            yield
            return
        if not name:
            raise ValueError("Scope name must be a non-empty string")

        parents = _active_scopes.get()
        token = _active_scopes.set((*parents, name))
        outcome = "ok"
        start = time.perf_counter()
        try:
            yield
        except BaseException as e:
            outcome = type(e).__name__
            raise
        finally:
            duration = time.perf_counter() - start
            _active_scopes.reset(token)
            self._dispatch(
                "record_timing",
                ".".join((*parents, name)),
                duration,
                depth=len(parents),
                outcome=outcome,
                **metadata,
            )

    def count(self, name: str, increment: int = 1, **metadata: Any) -> None:
        """Add ``increment`` to the counter ``name`` in the current scope."""
        if not self.reporters:
            return
        parents = _active_scopes.get()
        self._dispatch(
            "record_metric",
            ".".join((*parents, name)),
            increment,
            depth=len(parents),
            **metadata,
        )

    def _dispatch(self, method: str, scope: str, value: Any, **metadata: Any) -> None:
        # A failing reporter must never break an execution.
        for reporter in self.reporters:
            try:
                getattr(reporter, method)(scope, value, **metadata)
            except Exception:
                log.exception(
                    "Telemetry reporter '%s' failed in %s for scope %s",
                    type(reporter).__name__,
                    method,
                    scope,
                )


def telemetry_env_enabled() -> bool:
    """Return True when ``CHAINPLAN_TELEMETRY`` is exactly ``"1"``."""
    return os.getenv(TELEMETRY_ENV_VAR) == "1"


def build_telemetry(
    reporters: tuple[TelemetryReporter, ...] = (), *, enabled: bool | None = None
) -> Telemetry:
    """Return the telemetry an execution plan should use.

    ``enabled`` wins over the environment toggle. When enabled without
    reporters, an ``InMemoryReporter`` is installed so the data can be read
    back from ``ExecutionPlan.telemetry_reporters``. When disabled, any
    reporters are ignored.
    """
    if enabled is None:
        enabled = telemetry_env_enabled()
    if not enabled:
        return Telemetry()
    return Telemetry(reporters or (InMemoryReporter(),))


class InMemoryReporter:
    """Keeps the most recent timings and metrics per scope."""

    def __init__(self, max_entries_per_scope: int = 1000):
        self.max_entries = max_entries_per_scope
        self.timings: dict[str, deque[tuple[float, dict[str, Any]]]] = {}
        self.metrics: dict[str, deque[tuple[Any, dict[str, Any]]]] = {}

    def record_timing(self, scope: str, duration: float, **metadata: Any) -> None:
        self.timings.setdefault(scope, deque(maxlen=self.max_entries)).append(
            (duration, metadata)
        )

    def record_metric(self, scope: str, value: Any, **metadata: Any) -> None:
        self.metrics.setdefault(scope, deque(maxlen=self.max_entries)).append(
            (value, metadata)
        )
