"""Tests for the in-process rate gate."""

import pytest

from unified_search.services.rate_limit import InMemoryRateGate


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.mark.asyncio
async def test_allows_up_to_limit_then_denies():
    clock = FakeClock(1000.0)
    gate = InMemoryRateGate(limit=3, window_seconds=60, clock=clock)

    for _ in range(3):
        assert (await gate.check("alice")).allowed

    decision = await gate.check("alice")
    assert not decision.allowed
    # window [960, 1020) ends in 20 seconds
    assert decision.retry_after == pytest.approx(20.0)


@pytest.mark.asyncio
async def test_identities_are_independent():
    gate = InMemoryRateGate(limit=1, window_seconds=60, clock=FakeClock())
    assert (await gate.check("alice")).allowed
    assert (await gate.check("bob")).allowed
    assert not (await gate.check("alice")).allowed


@pytest.mark.asyncio
async def test_new_window_resets_count():
    clock = FakeClock(1000.0)
    gate = InMemoryRateGate(limit=1, window_seconds=60, clock=clock)
    assert (await gate.check("alice")).allowed
    assert not (await gate.check("alice")).allowed

    clock.now = 1021.0
    assert (await gate.check("alice")).allowed


def test_invalid_configuration():
    with pytest.raises(ValueError):
        InMemoryRateGate(limit=0)
    with pytest.raises(ValueError):
        InMemoryRateGate(limit=1, window_seconds=0)


@pytest.mark.asyncio
async def test_counters_from_old_windows_are_dropped():
    clock = FakeClock(1000.0)
    gate = InMemoryRateGate(limit=5, window_seconds=60, clock=clock)
    for identity in ("alice", "bob", "carol"):
        await gate.check(identity)
    assert len(gate._counters) == 3

    clock.now = 1100.0
    await gate.check("dave")

    assert set(gate._counters) == {"dave"}
