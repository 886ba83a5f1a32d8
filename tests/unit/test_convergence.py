"""Unit tests for the convergence poller."""

import logging

import pytest

from evilian.convergence import PollCondition, PollOutcome, PollResult, poll, require
from evilian.exceptions import ConvergenceTimeout


class CountingQuery:
    """Query stub returning 'busy' for the first N calls, then 'idle'."""

    def __init__(self, busy_calls: int):
        self.busy_calls = busy_calls
        self.calls = 0

    def __call__(self) -> str:
        self.calls += 1
        return "busy" if self.calls <= self.busy_calls else "idle"


def is_idle(value):
    return value == "idle"


class TestPoll:
    """Tests for poll()."""

    @pytest.mark.parametrize("busy_calls", [0, 1, 5, 9])
    def test_satisfied_after_n_plus_one_calls(self, busy_calls):
        """Busy for N calls, idle afterwards: satisfied after exactly N+1 calls."""
        query = CountingQuery(busy_calls)
        sleeps = []

        result = poll(query, is_idle, interval=20, max_attempts=10, sleep=sleeps.append)

        assert result.outcome is PollOutcome.SATISFIED
        assert result.attempts == busy_calls + 1
        assert query.calls == busy_calls + 1
        assert result.last_value == "idle"

    def test_sleeps_only_between_attempts(self):
        """No sleep after the satisfying call."""
        query = CountingQuery(3)
        sleeps = []

        poll(query, is_idle, interval=20, max_attempts=10, sleep=sleeps.append)

        assert sleeps == [20, 20, 20]

    def test_never_satisfied_exhausts_after_max_attempts(self):
        """A query that never satisfies is called exactly max_attempts times."""
        query = CountingQuery(busy_calls=1000)
        sleeps = []

        result = poll(query, is_idle, interval=10, max_attempts=18, sleep=sleeps.append)

        assert result.outcome is PollOutcome.EXHAUSTED
        assert result.attempts == 18
        assert query.calls == 18
        assert result.last_value == "busy"

    def test_no_sleep_after_final_attempt(self):
        sleeps = []

        poll(lambda: "busy", is_idle, interval=10, max_attempts=4, sleep=sleeps.append)

        assert len(sleeps) == 3

    def test_single_attempt_never_sleeps(self):
        sleeps = []

        result = poll(lambda: "busy", is_idle, interval=10, max_attempts=1, sleep=sleeps.append)

        assert result.outcome is PollOutcome.EXHAUSTED
        assert sleeps == []

    def test_unbounded_poll_keeps_going_until_satisfied(self):
        query = CountingQuery(busy_calls=250)
        sleeps = []

        result = poll(query, is_idle, interval=15, max_attempts=None, sleep=sleeps.append)

        assert result.satisfied
        assert query.calls == 251
        assert len(sleeps) == 250

    def test_unbounded_poll_warns_once(self, caplog):
        query = CountingQuery(busy_calls=3)

        with caplog.at_level(logging.WARNING, logger="evilian.convergence"):
            poll(query, is_idle, interval=15, max_attempts=None, sleep=lambda s: None, describe="VM")

        warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
        assert len(warnings) == 1
        assert "no attempt limit" in warnings[0].getMessage()

    def test_bounded_poll_does_not_warn(self, caplog):
        with caplog.at_level(logging.WARNING, logger="evilian.convergence"):
            poll(lambda: "idle", is_idle, interval=15, max_attempts=3, sleep=lambda s: None)

        assert not [r for r in caplog.records if r.levelno == logging.WARNING]

    @pytest.mark.parametrize("max_attempts", [0, -1])
    def test_rejects_non_positive_attempts(self, max_attempts):
        with pytest.raises(ValueError, match="max_attempts"):
            poll(lambda: "idle", is_idle, interval=1, max_attempts=max_attempts)

    def test_rejects_negative_interval(self):
        with pytest.raises(ValueError, match="interval"):
            poll(lambda: "idle", is_idle, interval=-1, max_attempts=3)

    def test_query_errors_propagate(self):
        def failing():
            raise RuntimeError("control plane down")

        with pytest.raises(RuntimeError, match="control plane down"):
            poll(failing, is_idle, interval=1, max_attempts=3, sleep=lambda s: None)


class TestPollCondition:
    """Tests for PollCondition."""

    def test_string_target_uses_equality(self):
        condition = PollCondition("power", lambda: "PowerState/running", "PowerState/running", 15)
        assert condition.is_satisfied("PowerState/running")
        assert not condition.is_satisfied("PowerState/starting")

    def test_predicate_target(self):
        condition = PollCondition("port", lambda: True, bool, 10, max_attempts=20)
        assert condition.is_satisfied(True)
        assert not condition.is_satisfied(False)

    def test_poll_uses_interval_and_bound(self):
        states = iter(["PowerState/starting", "PowerState/starting", "PowerState/running"])
        sleeps = []
        condition = PollCondition(
            "power", lambda: next(states), "PowerState/running", interval=15, max_attempts=5
        )

        result = condition.poll(sleep=sleeps.append)

        assert result.satisfied
        assert result.attempts == 3
        assert sleeps == [15, 15]


class TestRequire:
    """Tests for the exhaustion policy."""

    def test_satisfied_result_passes_through(self):
        result = PollResult(PollOutcome.SATISFIED, 2, "idle")
        assert require(result, "apt idle") is result

    def test_hard_exhaustion_raises(self):
        result = PollResult(PollOutcome.EXHAUSTED, 5, "PowerState/starting")

        with pytest.raises(ConvergenceTimeout) as exc_info:
            require(result, "VM running", hard=True)

        assert exc_info.value.hard is True
        assert exc_info.value.attempts == 5
        assert exc_info.value.last_value == "PowerState/starting"
        assert exc_info.value.exit_code == 5

    def test_soft_exhaustion_logs_and_continues(self, caplog):
        result = PollResult(PollOutcome.EXHAUSTED, 18, "busy")

        with caplog.at_level(logging.WARNING, logger="evilian.convergence"):
            returned = require(result, "apt/dpkg idle", hard=False)

        assert returned is result
        assert "Continuing even though apt/dpkg idle" in caplog.text
