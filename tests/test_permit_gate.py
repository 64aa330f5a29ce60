from __future__ import annotations

import threading
import time
import types

import pytest

from crpt_api.errors import PermitWaitCancelled, PermitWaitTimeout
from crpt_api.permit_gate import CancellationToken, PermitGate


def _wait_until(predicate, *, timeout: float = 2.0) -> None:
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            raise AssertionError("condition not reached in time")
        time.sleep(0.005)


def test_gate_rejects_invalid_construction() -> None:
    with pytest.raises(ValueError, match="capacity"):
        PermitGate(0, 1.0)
    with pytest.raises(ValueError, match="window"):
        PermitGate(3, 0)


def test_acquire_up_to_capacity_does_not_block() -> None:
    gate = PermitGate(3, 1.0)
    for _ in range(3):
        gate.acquire(timeout=0)
    assert gate.available == 0


def test_acquire_past_capacity_times_out_without_consuming() -> None:
    gate = PermitGate(2, 1.0)
    gate.acquire()
    gate.acquire()

    with pytest.raises(PermitWaitTimeout):
        gate.acquire(timeout=0.05)

    assert gate.available == 0
    assert gate.waiting == 0
    assert gate.try_acquire() is False


def test_blocked_acquire_is_granted_after_replenish() -> None:
    gate = PermitGate(3, 1.0)
    for _ in range(3):
        gate.acquire()

    granted = threading.Event()

    def _fourth() -> None:
        gate.acquire()
        granted.set()

    worker = threading.Thread(target=_fourth)
    worker.start()
    _wait_until(lambda: gate.waiting == 1)
    assert not granted.is_set()

    gate.replenish()
    worker.join(timeout=2.0)

    assert granted.is_set()
    assert gate.available == 2


def test_replenish_resets_to_capacity_and_is_idempotent() -> None:
    gate = PermitGate(4, 1.0)
    gate.replenish()
    assert gate.available == 4

    gate.acquire()
    gate.replenish()
    gate.replenish()
    assert gate.available == 4
    assert gate.replenish_count == 3


def test_cancel_wakes_blocked_waiter_without_consuming() -> None:
    gate = PermitGate(1, 1.0)
    gate.acquire()
    token = CancellationToken()
    errors: list[BaseException] = []

    def _blocked() -> None:
        try:
            gate.acquire(cancel=token)
        except PermitWaitCancelled as exc:
            errors.append(exc)

    worker = threading.Thread(target=_blocked)
    worker.start()
    _wait_until(lambda: gate.waiting == 1)

    token.cancel()
    worker.join(timeout=2.0)

    assert len(errors) == 1
    assert not isinstance(errors[0], PermitWaitTimeout)
    assert gate.available == 0
    gate.replenish()
    assert gate.available == 1


def test_already_cancelled_token_fails_before_taking_a_permit() -> None:
    gate = PermitGate(2, 1.0)
    token = CancellationToken()
    token.cancel()

    with pytest.raises(PermitWaitCancelled):
        gate.acquire(cancel=token)
    assert gate.available == 2


def test_concurrent_acquire_and_replenish_keep_bounds() -> None:
    capacity = 5
    gate = PermitGate(capacity, 1.0)
    stop = threading.Event()
    observed: list[int] = []
    granted = {"count": 0}
    count_lock = threading.Lock()

    def _consumer() -> None:
        while not stop.is_set():
            try:
                gate.acquire(timeout=0.01)
            except PermitWaitTimeout:
                continue
            with count_lock:
                granted["count"] += 1

    def _replenisher() -> None:
        while not stop.is_set():
            gate.replenish()
            time.sleep(0.001)

    def _observer() -> None:
        while not stop.is_set():
            observed.append(gate.available)
            time.sleep(0.0005)

    threads = [threading.Thread(target=_consumer) for _ in range(8)]
    threads.append(threading.Thread(target=_replenisher))
    threads.append(threading.Thread(target=_observer))
    for thread in threads:
        thread.start()
    time.sleep(0.2)
    stop.set()
    for thread in threads:
        thread.join(timeout=2.0)

    assert observed
    assert min(observed) >= 0
    assert max(observed) <= capacity
    assert granted["count"] > 0


def test_ticker_replenishes_each_window_and_stops_cleanly() -> None:
    gate = PermitGate(1, 0.02)
    gate.acquire()
    with gate:
        assert gate.running
        gate.acquire(timeout=1.0)
        _wait_until(lambda: gate.replenish_count >= 2)
    assert not gate.running

    count_after_stop = gate.replenish_count
    time.sleep(0.1)
    assert gate.replenish_count == count_after_stop


def test_start_is_noop_when_running_and_stop_is_idempotent() -> None:
    gate = PermitGate(2, 10.0)
    gate.start()
    gate.start()
    assert gate.running
    gate.stop()
    gate.stop()
    assert not gate.running
    assert gate.replenish_count == 0


def test_snapshot_reports_counters() -> None:
    gate = PermitGate(3, 60.0)
    gate.acquire()

    snap = gate.snapshot()

    assert snap.capacity == 3
    assert snap.available == 2
    assert snap.waiting == 0
    assert snap.window_s == 60.0
    assert snap.running is False


class _SteppingEvent:
    """Stop event whose waits advance a fake clock by the timeout plus a lag."""

    def __init__(self, clock: list[float], *, lag: float, ticks: int) -> None:
        self.clock = clock
        self.lag = lag
        self.ticks = ticks
        self.timeouts: list[float] = []

    def wait(self, timeout: float) -> bool:
        self.timeouts.append(round(timeout, 6))
        self.clock[0] += timeout + self.lag
        return len(self.timeouts) > self.ticks

    def is_set(self) -> bool:
        return False


def test_ticker_keeps_a_fixed_rate_when_resets_lag(monkeypatch: pytest.MonkeyPatch) -> None:
    clock = [100.0]
    monkeypatch.setattr(
        "crpt_api.permit_gate.time", types.SimpleNamespace(monotonic=lambda: clock[0])
    )
    gate = PermitGate(2, 1.0)
    event = _SteppingEvent(clock, lag=0.25, ticks=3)

    gate._run_ticker(event)  # pyright: ignore[reportArgumentType]

    assert event.timeouts == [1.0, 0.75, 0.75, 0.75]
    assert gate.replenish_count == 3
