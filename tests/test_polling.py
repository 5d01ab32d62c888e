"""Tests for deck2pdf.polling, run on a virtual clock."""

from __future__ import annotations

import pytest

from deck2pdf.polling import poll_until


class FakeClock:
    def __init__(self):
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


class TestPollUntil:
    def test_ready_immediately(self, clock):
        result = poll_until(lambda: True, interval=0.5, timeout=5, clock=clock, sleep=clock.sleep)
        assert result.ready
        assert result.attempts == 1
        assert clock.sleeps == []

    def test_ready_after_some_attempts(self, clock):
        answers = iter([False, False, True])
        result = poll_until(lambda: next(answers), interval=0.5, timeout=5, clock=clock, sleep=clock.sleep)
        assert result.ready
        assert result.attempts == 3
        assert result.elapsed == pytest.approx(1.0)

    def test_timeout(self, clock):
        result = poll_until(lambda: False, interval=0.5, timeout=2, clock=clock, sleep=clock.sleep)
        assert result.timed_out
        assert result.elapsed == pytest.approx(2.0)
        assert result.attempts == 5

    def test_last_sleep_clipped_to_deadline(self, clock):
        poll_until(lambda: False, interval=0.75, timeout=1.0, clock=clock, sleep=clock.sleep)
        assert clock.sleeps == [0.75, 0.25]

    def test_zero_timeout_checks_once(self, clock):
        calls = []
        result = poll_until(lambda: calls.append(1), interval=0.5, timeout=0, clock=clock, sleep=clock.sleep)
        assert result.timed_out
        assert calls == [1]

    def test_predicate_errors_propagate(self, clock):
        def boom():
            raise RuntimeError("probe failed")

        with pytest.raises(RuntimeError, match="probe failed"):
            poll_until(boom, interval=0.5, timeout=5, clock=clock, sleep=clock.sleep)
