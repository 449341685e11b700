"""
Saga — sequential steps with compensation on failure.

    saga = (
        step("freeze_order", freeze(order), compensate=discard)
        .then(lambda order: step("open_intent", open_intent(order)))
    )

    match await run(saga):
        case Ok(done):
            done.value
        case Error(failure):
            failure.step_failed, failure.rollback_complete

When a step fails, the compensators recorded so far run in reverse. A
compensator that raises is logged and counted, the rest still run.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from kungfu import Result, Ok, Error, LazyCoroResult

from atelier.errors import CommerceError

logger = logging.getLogger(__name__)

type Compensator[T] = Callable[[T], Awaitable[None]]

# ═══════════════════════════════════════════════════════════════════════════════
# Saga AST
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class SagaStep[T]:
    """A named action plus what undoes it."""

    name: str
    action: LazyCoroResult[T, CommerceError]
    compensate: Compensator[T] | None = None

    def then[U](self, f: Callable[[T], SagaStep[U]]) -> Then[T, U]:
        return Then(self, f)


@dataclass(frozen=True, slots=True)
class Then[T, U]:
    """Run `inner`, feed its value to `f`, run the step it returns."""

    inner: SagaStep[T] | Then[Any, T]
    f: Callable[[T], SagaStep[U]]

    def then(self, g: Callable[[U], SagaStep[Any]]) -> Then[U, Any]:
        return Then(self, g)


def step[T](
    name: str,
    action: LazyCoroResult[T, CommerceError],
    compensate: Compensator[T] | None = None,
) -> SagaStep[T]:
    return SagaStep(name, action, compensate)


# ═══════════════════════════════════════════════════════════════════════════════
# Results
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class SagaResult[T]:
    value: T
    steps_executed: int


@dataclass(frozen=True, slots=True)
class SagaFailure:
    error: CommerceError
    step_failed: str
    compensators_run: int
    compensators_failed: int

    @property
    def rollback_complete(self) -> bool:
        return self.compensators_failed == 0


# ═══════════════════════════════════════════════════════════════════════════════
# Execution
# ═══════════════════════════════════════════════════════════════════════════════

type Recorded = list[tuple[str, Any, Compensator[Any]]]


async def _run_step[T](
    saga_step: SagaStep[T], recorded: Recorded
) -> Result[T, tuple[CommerceError, str]]:
    result = await saga_step.action
    match result:
        case Ok(value):
            if saga_step.compensate is not None:
                recorded.append((saga_step.name, value, saga_step.compensate))
            return Ok(value)
        case Error(e):
            return Error((e, saga_step.name))


async def _run_expr(
    expr: SagaStep[Any] | Then[Any, Any], recorded: Recorded, executed: list[str]
) -> Result[Any, tuple[CommerceError, str]]:
    if isinstance(expr, SagaStep):
        executed.append(expr.name)
        return await _run_step(expr, recorded)

    inner = await _run_expr(expr.inner, recorded, executed)
    match inner:
        case Ok(value):
            return await _run_expr(expr.f(value), recorded, executed)
        case Error(failure):
            return Error(failure)


async def _compensate(recorded: Recorded) -> tuple[int, int]:
    """Run compensators in reverse. Returns (run, failed)."""
    run_count = 0
    failed = 0
    for name, value, compensator in reversed(recorded):
        try:
            await compensator(value)
            run_count += 1
        except Exception:
            failed += 1
            logger.exception("compensation for step %s failed", name)
    return run_count, failed


async def run[T](saga: SagaStep[T] | Then[Any, T]) -> Result[SagaResult[T], SagaFailure]:
    recorded: Recorded = []
    executed: list[str] = []

    outcome = await _run_expr(saga, recorded, executed)
    match outcome:
        case Ok(value):
            return Ok(SagaResult(value=value, steps_executed=len(executed)))
        case Error((error, step_name)):
            comp_run, comp_failed = await _compensate(recorded)
            return Error(
                SagaFailure(
                    error=error,
                    step_failed=step_name,
                    compensators_run=comp_run,
                    compensators_failed=comp_failed,
                )
            )


__all__ = (
    "SagaStep",
    "Then",
    "step",
    "SagaResult",
    "SagaFailure",
    "run",
)
