"""Fixed-window permit gate for outbound registry requests.

The gate holds ``capacity`` permits. Each request attempt consumes one permit
and a background ticker resets the pool to full capacity once per window.
The reset is a hard overwrite, not an increment: permits never accrue between
ticks and the pool never grows past ``capacity``. Because the whole pool comes
back at every tick, up to ``2 * capacity`` requests can pass in a short span
that straddles a window boundary. That is the fixed-window quota contract and
it is kept as is.

Blocked callers are not served in FIFO order. Whichever waiter wakes first
after a reset takes the next permit.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from dataclasses import dataclass

from crpt_api.errors import PermitWaitCancelled, PermitWaitTimeout


class CancellationToken:
    """Cancellation signal that wakes callers blocked in `PermitGate.acquire`."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._cancelled = False
        self._callbacks: list[Callable[[], None]] = []

    @property
    def cancelled(self) -> bool:
        with self._lock:
            return self._cancelled

    def cancel(self) -> None:
        with self._lock:
            if self._cancelled:
                return
            self._cancelled = True
            callbacks = list(self._callbacks)
            self._callbacks.clear()
        for callback in callbacks:
            callback()

    def subscribe(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Register a wake-up callback; returns a function that unregisters it."""
        with self._lock:
            if not self._cancelled:
                self._callbacks.append(callback)

        def _unsubscribe() -> None:
            with self._lock:
                if callback in self._callbacks:
                    self._callbacks.remove(callback)

        return _unsubscribe


@dataclass(frozen=True)
class GateSnapshot:
    """Point-in-time view of the gate counters."""

    capacity: int
    available: int
    waiting: int
    window_s: float
    running: bool
    replenish_count: int


class PermitGate:
    """Counting permit pool reset to full capacity on a fixed clock."""

    def __init__(self, capacity: int, window_s: float) -> None:
        if int(capacity) < 1:
            raise ValueError(f"capacity must be a positive integer, got {capacity!r}")
        if float(window_s) <= 0:
            raise ValueError(f"window must be a positive duration, got {window_s!r}")
        self._capacity = int(capacity)
        self._window_s = float(window_s)
        self._available = self._capacity
        self._waiting = 0
        self._replenish_count = 0
        self._cond = threading.Condition(threading.Lock())
        self._lifecycle = threading.Lock()
        self._stop_event: threading.Event | None = None
        self._ticker: threading.Thread | None = None

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def window_s(self) -> float:
        return self._window_s

    @property
    def available(self) -> int:
        with self._cond:
            return self._available

    @property
    def waiting(self) -> int:
        with self._cond:
            return self._waiting

    @property
    def replenish_count(self) -> int:
        with self._cond:
            return self._replenish_count

    @property
    def running(self) -> bool:
        with self._lifecycle:
            return self._ticker is not None

    def snapshot(self) -> GateSnapshot:
        running = self.running
        with self._cond:
            return GateSnapshot(
                capacity=self._capacity,
                available=self._available,
                waiting=self._waiting,
                window_s=self._window_s,
                running=running,
                replenish_count=self._replenish_count,
            )

    def acquire(
        self,
        *,
        timeout: float | None = None,
        cancel: CancellationToken | None = None,
    ) -> None:
        """Block until a permit is free, then take it.

        Raises `PermitWaitCancelled` when ``cancel`` fires and `PermitWaitTimeout`
        when ``timeout`` seconds pass first. In both cases no permit is taken.
        """
        deadline = None if timeout is None else time.monotonic() + max(0.0, float(timeout))
        unsubscribe = cancel.subscribe(self._wake_all) if cancel is not None else None
        try:
            with self._cond:
                while True:
                    if cancel is not None and cancel.cancelled:
                        raise PermitWaitCancelled("permit wait cancelled")
                    if self._available > 0:
                        self._available -= 1
                        return
                    if deadline is None:
                        remaining = None
                    else:
                        remaining = deadline - time.monotonic()
                        if remaining <= 0:
                            raise PermitWaitTimeout(f"no permit within {timeout}s")
                    self._waiting += 1
                    try:
                        self._cond.wait(remaining)
                    finally:
                        self._waiting -= 1
        finally:
            if unsubscribe is not None:
                unsubscribe()

    def try_acquire(self) -> bool:
        """Take a permit if one is free right now."""
        with self._cond:
            if self._available <= 0:
                return False
            self._available -= 1
            return True

    def replenish(self) -> None:
        """Reset the pool to full capacity and wake every waiter."""
        with self._cond:
            self._reset_locked()

    def start(self) -> None:
        """Start the background ticker; a running gate is left as is."""
        with self._lifecycle:
            if self._ticker is not None:
                return
            stop_event = threading.Event()
            ticker = threading.Thread(
                target=self._run_ticker,
                args=(stop_event,),
                name="permit-gate-ticker",
                daemon=True,
            )
            self._stop_event = stop_event
            self._ticker = ticker
            ticker.start()

    def stop(self) -> None:
        """Stop the ticker. No reset happens after this returns."""
        with self._lifecycle:
            stop_event, ticker = self._stop_event, self._ticker
            self._stop_event = None
            self._ticker = None
        if stop_event is None or ticker is None:
            return
        with self._cond:
            stop_event.set()
        if ticker is not threading.current_thread():
            ticker.join()

    def __enter__(self) -> PermitGate:
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.stop()

    def _run_ticker(self, stop_event: threading.Event) -> None:
        # Fixed rate: ticks land on start + k * window, however long a reset takes.
        next_tick = time.monotonic() + self._window_s
        while not stop_event.wait(max(0.0, next_tick - time.monotonic())):
            with self._cond:
                if stop_event.is_set():
                    return
                self._reset_locked()
            next_tick += self._window_s

    def _reset_locked(self) -> None:
        self._available = self._capacity
        self._replenish_count += 1
        self._cond.notify_all()

    def _wake_all(self) -> None:
        with self._cond:
            self._cond.notify_all()
