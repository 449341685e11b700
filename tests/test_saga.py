from kungfu import Ok, Error, LazyCoroResult, Result

from atelier.errors import CommerceError, Errors
from atelier.orders import run, step


def ok(value: int, log: list[str], name: str) -> LazyCoroResult[int, CommerceError]:
    async def impl() -> Result[int, CommerceError]:
        log.append(f"do {name}")
        return Ok(value)

    return LazyCoroResult(impl)


def fail(log: list[str], name: str) -> LazyCoroResult[int, CommerceError]:
    async def impl() -> Result[int, CommerceError]:
        log.append(f"do {name}")
        return Error(Errors.gateway_unavailable("down"))

    return LazyCoroResult(impl)


def undo(log: list[str], name: str):
    async def compensate(value: int) -> None:
        log.append(f"undo {name}:{value}")

    return compensate


async def test_chain_passes_values_forward() -> None:
    log: list[str] = []
    saga = step("a", ok(1, log, "a"), undo(log, "a")).then(
        lambda v: step("b", ok(v + 1, log, "b"))
    )

    result = await run(saga)

    match result:
        case Ok(done):
            assert done.value == 2
            assert done.steps_executed == 2
        case Error(failure):
            raise AssertionError(failure)
    assert log == ["do a", "do b"]


async def test_failure_compensates_in_reverse() -> None:
    log: list[str] = []
    saga = (
        step("a", ok(1, log, "a"), undo(log, "a"))
        .then(lambda v: step("b", ok(v + 1, log, "b"), undo(log, "b")))
        .then(lambda v: step("c", fail(log, "c")))
    )

    result = await run(saga)

    match result:
        case Error(failure):
            assert failure.step_failed == "c"
            assert failure.compensators_run == 2
            assert failure.rollback_complete
        case Ok(_):
            raise AssertionError("expected a failure")
    assert log == ["do a", "do b", "do c", "undo b:2", "undo a:1"]


async def test_failing_compensator_is_counted() -> None:
    log: list[str] = []

    async def explode(value: int) -> None:
        raise RuntimeError("cannot undo")

    saga = (
        step("a", ok(1, log, "a"), undo(log, "a"))
        .then(lambda v: step("b", ok(2, log, "b"), explode))
        .then(lambda v: step("c", fail(log, "c")))
    )

    result = await run(saga)

    match result:
        case Error(failure):
            assert failure.compensators_failed == 1
            assert not failure.rollback_complete
        case Ok(_):
            raise AssertionError("expected a failure")
    assert "undo a:1" in log
