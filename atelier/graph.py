"""
Graph — fluent runner over nodnod.

Declare nodes, ask for the one you need, inject the inputs by type.
Independent branches run concurrently.

    from atelier import graph as G

    @G.node
    class PaymentsNode:
        def __init__(self, payments: list[Payment]) -> None:
            self.payments = payments

        @classmethod
        async def __compose__(cls, query: BillingQuery, ctx: BillingContext) -> "PaymentsNode":
            return cls(await ctx.payments.for_project(query.project_id))

    node = await G.compose(PaymentsNode, query, ctx)

Note: modules that declare nodes must not use `from __future__ import annotations`,
nodnod reads the __compose__ hints at runtime to resolve dependencies.
"""

from __future__ import annotations

from collections.abc import Callable, Coroutine
from dataclasses import dataclass
from typing import Any, cast

from nodnod import EventLoopAgent, Node, Scope, Value, scalar_node as node

# ═══════════════════════════════════════════════════════════════════════════════
# Run — Fluent awaitable builder
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class Run[T]:
    """
    Pending execution of a target node.

        view = await G.run(BillingViewNode).inject(query).inject(ctx)
    """

    target: type[T]
    injections: tuple[tuple[type[Any], Any], ...] = ()

    def inject(self, value: object) -> Run[T]:
        """Inject a value under its runtime type."""
        return self.inject_as(cast(type[Any], type(value)), value)

    def inject_as[V](self, typ: type[V], value: V) -> Run[T]:
        """Inject under an explicit type (protocol implementations)."""
        return Run(self.target, (*self.injections, (typ, value)))

    def given(self, *values: object) -> Run[T]:
        run: Run[T] = self
        for value in values:
            run = run.inject(value)
        return run

    def __await__(self) -> Any:
        return self._execute().__await__()

    async def _execute(self) -> T:
        agent = EventLoopAgent.build({cast(type[Node[Any, Any]], self.target)})
        scope = Scope(detail=f"run:{self.target.__name__}")

        async with scope:
            for typ, value in self.injections:
                scope.push(Value(typ, value))

            run_method = cast(
                Callable[[Scope, dict[type[Any], Scope]], Coroutine[Any, Any, None]],
                getattr(agent, "run"),
            )
            await run_method(scope, {})

            resolved = scope.get(self.target)
            if resolved is None:
                raise LookupError(f"{self.target.__name__} was not resolved")
            return cast(T, resolved.value)


def run[T](target: type[T]) -> Run[T]:
    return Run(target)


async def compose[T](target: type[T], *inputs: object) -> T:
    """One-shot: resolve target from the given inputs."""
    return await run(target).given(*inputs)


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = ("node", "Run", "run", "compose")
