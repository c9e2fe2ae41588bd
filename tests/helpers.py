"""Test helpers (small, reusable handler doubles)."""

from __future__ import annotations

import asyncio
from typing import Any

from chainplan import PipelineHandler


class RecordingHandler(PipelineHandler[Any, Any]):
    """Handler that appends its name to a shared journal, then forwards."""

    def __init__(self, name: str, journal: list[str] | None = None) -> None:
        super().__init__()
        self.name = name
        self.journal = journal if journal is not None else []
        self.calls = 0

    def invoke(self, context):
        self.calls += 1
        self.journal.append(self.name)
        super().invoke(context)

    async def invoke_async(self, context):
        self.calls += 1
        self.journal.append(self.name)
        await super().invoke_async(context)

    def __repr__(self) -> str:
        return f"RecordingHandler({self.name!r})"


class SuffixHandler(PipelineHandler[str, str]):
    """Sets ``output = input + suffix`` and forwards (reads input, not output)."""

    def __init__(self, suffix: str, journal: list[str] | None = None) -> None:
        super().__init__()
        self.suffix = suffix
        self.journal = journal if journal is not None else []

    def invoke(self, context):
        self.journal.append(self.suffix)
        context.output = context.input + self.suffix
        self.forward(context)

    async def invoke_async(self, context):
        self.journal.append(self.suffix)
        await asyncio.sleep(0)
        context.output = context.input + self.suffix
        await self.forward_async(context)


class AccumulateHandler(PipelineHandler[str, str]):
    """Appends ``suffix`` to the running output (or input when unset)."""

    def __init__(self, suffix: str) -> None:
        super().__init__()
        self.suffix = suffix

    def invoke(self, context):
        base = context.output if context.output is not None else context.input
        context.output = base + self.suffix
        self.forward(context)

    async def invoke_async(self, context):
        base = context.output if context.output is not None else context.input
        context.output = base + self.suffix
        await self.forward_async(context)
