# tests/unit/queue/test_unit_circuit_breaker.py — v1
"""Tests for queue/circuit_breaker.py — sticky open state and reset."""

from __future__ import annotations

from linklore.queue.circuit_breaker import CircuitBreaker


class TestCircuitBreaker:
    def test_starts_closed(self):
        breaker = CircuitBreaker()
        assert breaker.state == "closed"
        assert breaker.allow() is True
        assert breaker.opened_at is None

    def test_first_failure_opens(self):
        breaker = CircuitBreaker("redis")
        breaker.record_failure(ConnectionError("refused"))
        assert breaker.is_open
        assert breaker.allow() is False
        assert breaker.last_failure == "refused"
        assert breaker.opened_at is not None
        assert breaker.trip_count == 1

    def test_stays_open_without_reset(self):
        breaker = CircuitBreaker()
        breaker.record_failure("boom")
        breaker.record_failure("boom again")
        assert breaker.is_open
        assert breaker.trip_count == 1
        assert breaker.last_failure == "boom again"

    def test_reset_closes(self):
        breaker = CircuitBreaker()
        breaker.record_failure("boom")
        breaker.reset()
        assert breaker.state == "closed"
        assert breaker.allow() is True
        assert breaker.opened_at is None

    def test_trip_count_accumulates_across_resets(self):
        breaker = CircuitBreaker()
        breaker.record_failure("one")
        breaker.reset()
        breaker.record_failure("two")
        assert breaker.trip_count == 2

    def test_reset_when_closed_is_noop(self):
        breaker = CircuitBreaker()
        breaker.reset()
        assert breaker.state == "closed"
