"""
Ordered "first success wins" combinator.

Both the bypass orchestrator and the force-extraction fallback are lists of
``(name, operation)`` pairs run in order until one succeeds. An operation
signals failure by returning a :class:`Failure` or by raising; either way the
reason is recorded and the next operation runs.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Awaitable, Callable, Generic, Iterable, List, Optional, Tuple, TypeVar, Union

import structlog

logger = structlog.get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class Failure:
    message: str


@dataclass
class FallbackOutcome(Generic[T]):
    """Winner (if any) plus every failure recorded before it."""

    winner: Optional[str] = None
    value: Optional[T] = None
    failures: List[Tuple[str, str]] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.winner is not None

    @property
    def attempted(self) -> List[str]:
        names = [name for name, _ in self.failures]
        if self.winner is not None:
            names.append(self.winner)
        return names


AsyncAttempt = Tuple[str, Callable[[], Awaitable[Union[T, Failure]]]]
SyncAttempt = Tuple[str, Callable[[], Union[T, Failure]]]


def _record(outcome: FallbackOutcome[T], name: str, result: Union[T, Failure, None], component: str) -> bool:
    if isinstance(result, Failure) or result is None:
        message = result.message if isinstance(result, Failure) else "no result"
        outcome.failures.append((name, message))
        logger.debug("Fallback attempt failed", component=component, attempt=name, reason=message)
        return False
    outcome.winner = name
    outcome.value = result
    logger.debug("Fallback attempt succeeded", component=component, attempt=name)
    return True


async def first_success(attempts: Iterable[AsyncAttempt[T]], *, component: str = "fallback") -> FallbackOutcome[T]:
    """Await each operation in order and stop at the first success."""
    outcome: FallbackOutcome[T] = FallbackOutcome()
    for name, operation in attempts:
        try:
            result = await operation()
        except Exception as e:
            logger.warning(
                "Fallback attempt raised", component=component, attempt=name, error=str(e), error_type=type(e).__name__
            )
            outcome.failures.append((name, str(e) or type(e).__name__))
            continue
        if _record(outcome, name, result, component):
            break
    return outcome


def first_success_sync(attempts: Iterable[SyncAttempt[T]], *, component: str = "fallback") -> FallbackOutcome[T]:
    """Synchronous twin of :func:`first_success` for in-memory DOM work."""
    outcome: FallbackOutcome[T] = FallbackOutcome()
    for name, operation in attempts:
        try:
            result = operation()
        except Exception as e:
            logger.warning(
                "Fallback attempt raised", component=component, attempt=name, error=str(e), error_type=type(e).__name__
            )
            outcome.failures.append((name, str(e) or type(e).__name__))
            continue
        if _record(outcome, name, result, component):
            break
    return outcome
