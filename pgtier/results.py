# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
Typed step results - Collaborator outcomes as values.

Collaborators raise pgtier exceptions; `attempt` converts one awaited call
into a StepResult so the orchestrator decides abort-or-continue from
`result.kind` instead of from exception handlers. Exceptions that are not
PgTierError are bugs and propagate unchanged.
"""

from dataclasses import dataclass
from typing import Awaitable, Generic, TypeVar

from pgtier.exceptions import ErrorKind, PgTierError

T = TypeVar("T")


@dataclass(frozen=True)
class StepResult(Generic[T]):
    """Either a value or a typed error."""

    value: T | None = None
    error: PgTierError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def kind(self) -> ErrorKind | None:
        return self.error.kind if self.error else None

    @property
    def message(self) -> str:
        return str(self.error) if self.error else ""


async def attempt(awaitable: Awaitable[T]) -> StepResult[T]:
    """Await a collaborator call and capture its typed failure, if any."""
    try:
        return StepResult(value=await awaitable)
    except PgTierError as e:
        return StepResult(error=e)
