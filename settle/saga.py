"""
Saga — ordered steps with reverse-order compensation.

Each step is an action returning Result plus an optional compensator that
receives the action's value. Steps run one after another; the first Error
stops the run and every recorded compensator runs, newest first.

Example:
    from settle.saga import SagaStep, run_saga

    steps = [
        SagaStep(
            name=f"reserve {line.key}",
            action=LazyCoroResult(lambda: ledger.reserve(line.key, line.quantity, order_id)),
            compensate=lambda r: ledger.release(r.id),
        )
        for line in lines
    ]

    match await run_saga(steps):
        case Ok(done):
            reservations = done.values
        case Error(failed):
            print(f"step {failed.step_failed} failed: {failed.error}")
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Any

from kungfu import Error, LazyCoroResult, Ok, Result

logger = logging.getLogger(__name__)

# ═══════════════════════════════════════════════════════════════════════════════
# Types
# ═══════════════════════════════════════════════════════════════════════════════

type Compensator[T] = Callable[[T], Awaitable[Any]]
"""Undo action; receives the value the step produced."""

type RecordedCompensator[T] = tuple[str, T, Compensator[T]]


@dataclass(frozen=True, slots=True)
class SagaStep[T, E]:
    """
    A single saga step: action + compensator.

    When action succeeds, compensator is recorded.
    If a later step fails, compensators run in reverse.
    """

    name: str
    action: LazyCoroResult[T, E]
    compensate: Compensator[T] | None = None


@dataclass(frozen=True, slots=True)
class SagaResult[T]:
    """Successful saga result with metadata."""

    values: tuple[T, ...]
    steps_executed: int
    compensators_recorded: int


@dataclass(frozen=True, slots=True)
class SagaError[E]:
    """Saga error with rollback status."""

    error: E
    step_failed: int
    step_name: str
    compensators_run: int
    compensators_failed: int

    @property
    def rollback_complete(self) -> bool:
        return self.compensators_failed == 0


# ═══════════════════════════════════════════════════════════════════════════════
# run_compensators() — Rollback
# ═══════════════════════════════════════════════════════════════════════════════

async def run_compensators[T](
    compensators: list[RecordedCompensator[T]],
) -> tuple[int, int]:
    """
    Run compensators in reverse. Returns (run, failed).

    A compensator fails when it raises or returns an Error.
    """
    comp_run = 0
    comp_failed = 0

    for name, value, comp in reversed(compensators):
        try:
            outcome = await comp(value)
        except Exception:
            logger.exception("compensation for %r raised", name)
            comp_failed += 1
            continue

        if isinstance(outcome, Error):
            logger.error("compensation for %r failed: %r", name, outcome.error)
            comp_failed += 1
        else:
            comp_run += 1

    return comp_run, comp_failed


# ═══════════════════════════════════════════════════════════════════════════════
# run_saga() — Execute Steps
# ═══════════════════════════════════════════════════════════════════════════════

async def run_saga[T, E](
    steps: Sequence[SagaStep[T, E]],
) -> Result[SagaResult[T], SagaError[E]]:
    """
    Execute steps in order with automatic rollback on failure.

    On success: returns SagaResult with every step's value.
    On failure: runs compensators in reverse, returns SagaError.
    """
    compensators: list[RecordedCompensator[T]] = []
    values: list[T] = []

    for index, step in enumerate(steps, start=1):
        match await step.action:
            case Ok(value):
                values.append(value)
                if step.compensate is not None:
                    compensators.append((step.name, value, step.compensate))

            case Error(error):
                logger.info(
                    "saga step %d (%s) failed, compensating %d step(s)",
                    index,
                    step.name,
                    len(compensators),
                )
                comp_run, comp_failed = await run_compensators(compensators)
                return Error(SagaError(
                    error=error,
                    step_failed=index,
                    step_name=step.name,
                    compensators_run=comp_run,
                    compensators_failed=comp_failed,
                ))

    return Ok(SagaResult(
        values=tuple(values),
        steps_executed=len(steps),
        compensators_recorded=len(compensators),
    ))


__all__ = (
    "Compensator",
    "SagaStep",
    "SagaResult",
    "SagaError",
    "run_compensators",
    "run_saga",
)
