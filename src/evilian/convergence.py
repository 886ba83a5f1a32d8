"""Convergence polling for asynchronous Azure state transitions.

The control plane returns before a VM has booted, before its guest agent is
ready and before apt/dpkg has gone quiet. Every wait point in a run goes
through the single ``poll`` loop below instead of its own sleep loop.

Exhaustion policy is the caller's decision:
- hard wait points (VM power state, guest agent) turn EXHAUSTED into
  ConvergenceTimeout via ``require``;
- soft wait points (package manager idle) log a warning and continue,
  because the bootstrap script waits for the locks itself.

Usage:
    result = poll(
        query=lambda: client.get_power_state(rg, vm),
        is_satisfied=lambda state: state == "PowerState/running",
        interval=15,
        max_attempts=None,
    )
"""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from evilian.exceptions import ConvergenceTimeout

logger = logging.getLogger(__name__)


class PollOutcome(Enum):
    """How a poll ended."""

    SATISFIED = "satisfied"
    EXHAUSTED = "exhausted"


@dataclass
class PollResult:
    """Outcome of a poll together with the number of query calls made."""

    outcome: PollOutcome
    attempts: int
    last_value: Any = None

    @property
    def satisfied(self) -> bool:
        return self.outcome is PollOutcome.SATISFIED


@dataclass
class PollCondition:
    """A wait point: what to query, what to expect, how often and how long.

    ``target`` is either the expected status string or a predicate.
    """

    description: str
    query: Callable[[], Any]
    target: Any
    interval: float
    max_attempts: int | None = None

    def is_satisfied(self, value: Any) -> bool:
        if callable(self.target):
            return bool(self.target(value))
        return value == self.target

    def poll(self, sleep: Callable[[float], None] = time.sleep) -> PollResult:
        return poll(
            self.query,
            self.is_satisfied,
            self.interval,
            self.max_attempts,
            sleep=sleep,
            describe=self.description,
        )


def poll(
    query: Callable[[], Any],
    is_satisfied: Callable[[Any], bool],
    interval: float,
    max_attempts: int | None,
    sleep: Callable[[float], None] = time.sleep,
    describe: str | None = None,
) -> PollResult:
    """Call ``query`` until ``is_satisfied`` accepts its result or attempts run out.

    The calling thread sleeps ``interval`` seconds between attempts only:
    never after the satisfying call and never after the final attempt.

    Args:
        query: Side-effecting status query
        is_satisfied: Predicate over the query result
        interval: Seconds to sleep between attempts
        max_attempts: Attempt bound, or None for unbounded
        sleep: Sleep function (injectable for tests)
        describe: Human-readable name of the wait point for logs

    Returns:
        PollResult with SATISFIED or EXHAUSTED

    Raises:
        ValueError: If max_attempts is not positive or interval is negative
    """
    if max_attempts is not None and max_attempts < 1:
        raise ValueError("max_attempts must be at least 1 (or None for unbounded)")
    if interval < 0:
        raise ValueError("interval must be non-negative")

    label = describe or getattr(query, "__name__", "condition")
    if max_attempts is None:
        logger.warning(f"Waiting for {label} with no attempt limit; interrupt with Ctrl+C")

    attempt = 0
    value: Any = None
    while max_attempts is None or attempt < max_attempts:
        attempt += 1
        value = query()

        if is_satisfied(value):
            logger.debug(f"{label} satisfied on attempt {attempt}")
            return PollResult(PollOutcome.SATISFIED, attempt, value)

        if max_attempts is not None and attempt >= max_attempts:
            break

        bound = f"/{max_attempts}" if max_attempts is not None else ""
        logger.info(
            f"Current state of {label}: {value or 'unknown'}. "
            f"Waiting {interval:g} seconds (attempt {attempt}{bound})..."
        )
        sleep(interval)

    logger.debug(f"{label} not satisfied after {attempt} attempts")
    return PollResult(PollOutcome.EXHAUSTED, attempt, value)


def require(result: PollResult, wait_point: str, hard: bool = True) -> PollResult:
    """Apply the exhaustion policy for a wait point.

    Hard wait points raise ConvergenceTimeout; soft ones log a warning and
    return the result so the run can continue.
    """
    if result.satisfied:
        return result

    if hard:
        raise ConvergenceTimeout(
            wait_point, result.attempts, hard=True, last_value=result.last_value
        )

    logger.warning(
        f"Continuing even though {wait_point} was not reached after {result.attempts} attempts"
    )
    return result


__all__ = ["PollCondition", "PollOutcome", "PollResult", "poll", "require"]
