"""chainplan: a small chain-of-responsibility pipeline.

Public API:
    - ExecutionPlan: ordered, linked handlers and execution entry points
    - PipelineHandler / CallableHandler: handler base class and adapter
    - ExecutionContext: per-call input/output carrier
    - Settings / resolve_settings: configuration
"""

from __future__ import annotations

import logging

from chainplan.config import Settings, resolve_settings
from chainplan.context import Context, ExecutionContext
from chainplan.errors import (
    ChainplanError,
    ConfigurationError,
    DuplicateMembershipError,
    EmptyPipelineError,
    HandlerNotFoundError,
    IndexOutOfRangeError,
    InvalidArgumentError,
    LinkageError,
)
from chainplan.handler import CallableHandler, Handler, PipelineHandler
from chainplan.plan import ExecutionPlan

try:
    from importlib.metadata import PackageNotFoundError, version

    __version__ = version("chainplan")
except PackageNotFoundError:
    __version__ = "0.0.0+unknown"

# Library-level NullHandler: stay silent unless the consumer configures logging.
logging.getLogger("chainplan").addHandler(logging.NullHandler())

__all__ = [  # noqa: RUF022
    # Core
    "ExecutionPlan",
    "PipelineHandler",
    "CallableHandler",
    "ExecutionContext",
    # Capabilities
    "Handler",
    "Context",
    # Configuration
    "Settings",
    "resolve_settings",
    # Errors
    "ChainplanError",
    "ConfigurationError",
    "DuplicateMembershipError",
    "EmptyPipelineError",
    "HandlerNotFoundError",
    "IndexOutOfRangeError",
    "InvalidArgumentError",
    "LinkageError",
]
