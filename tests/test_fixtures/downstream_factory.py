"""
Scripted downstream call.

Each call consumes the next scripted outcome: an exception instance is
raised, a callable is awaited with (target, payload), anything else is
returned. When the script runs out the last outcome repeats.
"""

import asyncio
import inspect
from typing import Any


class StatusError(Exception):
    """Raw HTTP-style error as an SDK might raise it."""

    def __init__(self, status_code: int, message: str = "", code: str | None = None):
        super().__init__(message or f"HTTP {status_code}")
        self.status_code = status_code
        self.code = code


class ScriptedDownstream:
    def __init__(self, *outcomes: Any, delay: float = 0.0):
        self._outcomes = list(outcomes) or ["ok"]
        self._delay = delay
        self.calls: list[tuple[Any, Any]] = []

    @property
    def call_count(self) -> int:
        return len(self.calls)

    @property
    def targets(self) -> list[str]:
        return [target.name for target, _ in self.calls]

    async def __call__(self, target, payload):
        index = min(len(self.calls), len(self._outcomes) - 1)
        self.calls.append((target, payload))
        outcome = self._outcomes[index]

        if self._delay:
            await asyncio.sleep(self._delay)

        if isinstance(outcome, BaseException):
            raise outcome
        if callable(outcome):
            result = outcome(target, payload)
            if inspect.isawaitable(result):
                result = await result
            return result
        return outcome
