"""Recovered-error boundary for secondary side effects.

Fragment rendering and notification delivery must never break the primary
path (persist + broadcast). Those calls go through :func:`attempt` /
:func:`attempt_async`, which log the failure and hand back an ``Outcome``
instead of raising.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, TypeVar

T = TypeVar("T")

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Outcome(Generic[T]):
    value: T
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def attempt(label: str, fn: Callable[[], T], *, default: T) -> Outcome[T]:
    try:
        return Outcome(fn())
    except Exception as exc:
        logger.exception("%s failed", label)
        return Outcome(default, exc)


async def attempt_async(
    label: str, fn: Callable[[], Awaitable[T]], *, default: T
) -> Outcome[T]:
    try:
        return Outcome(await fn())
    except Exception as exc:
        logger.exception("%s failed", label)
        return Outcome(default, exc)
