"""
Thread-safe primitives and execution contexts.

Workers produce results, callback contexts consume them. Every hand-off from
a worker thread back to a consumer goes through a CallbackContext so the
consumer decides which thread runs its callbacks.
"""
import logging
import queue
import threading
import time
from abc import ABC, abstractmethod
from typing import Callable, Generic, Optional, TypeVar

log = logging.getLogger(__name__)

T = TypeVar('T')


class AtomicValue(Generic[T]):
    """
    Single value shared between a scheduler thread and its owner.

        cycles = AtomicValue(0)
        cycles.update(lambda n: n + 1)    # tick thread
        cycles.get()                      # stats() on any thread
    """

    def __init__(self, initial: T):
        self._value: T = initial
        self._lock = threading.Lock()

    def get(self) -> T:
        with self._lock:
            return self._value

    def set(self, value: T) -> None:
        with self._lock:
            self._value = value

    def update(self, func: Callable[[T], T]) -> T:
        """Replace the value with func(value) under the lock; returns the new value."""
        with self._lock:
            self._value = func(self._value)
            return self._value


class CallbackContext(ABC):
    """
    Execution context that receives results from worker threads.

    Implementations decide on which thread a posted callback runs. A failing
    callback is logged and never propagates into the context's loop.
    """

    @abstractmethod
    def post(self, callback: Callable[[], None]) -> None:
        """Schedule a zero-argument callback to run on this context."""
        pass

    def _invoke(self, callback: Callable[[], None]) -> None:
        try:
            callback()
        except Exception:
            log.exception(f"Callback {getattr(callback, '__name__', callback)!r} failed")


class InlineCallbackContext(CallbackContext):
    """Runs callbacks immediately on the posting thread."""

    def post(self, callback: Callable[[], None]) -> None:
        self._invoke(callback)


class QueueCallbackContext(CallbackContext):
    """
    Looper-style context bound to the thread that drains it.

    post() is safe from any thread; callbacks only run inside run_pending(),
    run_until() or run_forever(), on whichever thread calls them.
    """

    def __init__(self, name: str = 'callbacks'):
        self.name = name
        self._queue: queue.Queue = queue.Queue()
        self._posted = 0
        self._executed = 0
        self._lock = threading.Lock()

    def post(self, callback: Callable[[], None]) -> None:
        with self._lock:
            self._posted += 1
        self._queue.put(callback)

    @property
    def pending(self) -> int:
        """Number of callbacks waiting to run."""
        return self._queue.qsize()

    def run_pending(self) -> int:
        """
        Run every callback queued so far without blocking.

        Returns:
            Number of callbacks executed
        """
        count = 0
        while True:
            try:
                callback = self._queue.get_nowait()
            except queue.Empty:
                return count
            self._run(callback)
            count += 1

    def run_until(self, predicate: Callable[[], bool], timeout: float = 5.0) -> bool:
        """
        Run callbacks as they arrive until predicate() holds.

        Returns:
            True if the predicate became true before the timeout
        """
        deadline = time.monotonic() + timeout
        self.run_pending()
        while not predicate():
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return False
            try:
                callback = self._queue.get(timeout=min(remaining, 0.05))
            except queue.Empty:
                continue
            self._run(callback)
        return True

    def run_forever(self, stop_event: threading.Event, poll_interval: float = 0.1) -> None:
        """Drain the queue on the calling thread until stop_event is set."""
        log.debug(f"Callback context {self.name!r} loop started")
        while not stop_event.is_set():
            try:
                callback = self._queue.get(timeout=poll_interval)
            except queue.Empty:
                continue
            self._run(callback)
        log.debug(f"Callback context {self.name!r} loop ended")

    def stats(self) -> dict:
        with self._lock:
            return {
                'name': self.name,
                'posted': self._posted,
                'executed': self._executed,
                'pending': self.pending,
            }

    def _run(self, callback: Callable[[], None]) -> None:
        self._invoke(callback)
        with self._lock:
            self._executed += 1


class ScheduledTask:
    """
    A fixed-rate recurring task running on its own daemon thread.

    Runs are serialized: the next run never starts before the previous one
    returns. Run n is due at start + n * period; a run that overruns its slot
    is followed immediately by the next one.
    """

    def __init__(
        self,
        func: Callable[[], None],
        initial_delay: float,
        period: float,
        name: str = 'ScheduledTask',
        clock: Callable[[], float] = time.monotonic,
    ):
        if period <= 0:
            raise ValueError(f"period must be positive, got {period}")
        self._func = func
        self._initial_delay = max(0.0, initial_delay)
        self._period = period
        self._clock = clock
        self._cancelled = threading.Event()
        self._runs = 0
        self._thread = threading.Thread(target=self._loop, daemon=True, name=name)

    @property
    def period(self) -> float:
        return self._period

    @property
    def runs(self) -> int:
        return self._runs

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def start(self) -> 'ScheduledTask':
        self._thread.start()
        return self

    def cancel(self) -> None:
        """Prevent any further runs. A run already in progress is not interrupted."""
        self._cancelled.set()

    def join(self, timeout: Optional[float] = None) -> None:
        if self._thread.is_alive() and self._thread is not threading.current_thread():
            self._thread.join(timeout=timeout)

    def is_alive(self) -> bool:
        return self._thread.is_alive()

    def _loop(self) -> None:
        next_run = self._clock() + self._initial_delay
        while not self._cancelled.is_set():
            delay = next_run - self._clock()
            if delay > 0 and self._cancelled.wait(timeout=delay):
                break
            if self._cancelled.is_set():
                break

            self._runs += 1
            try:
                self._func()
            except Exception:
                log.exception(f"Scheduled task {self._thread.name!r} raised")

            next_run += self._period
            now = self._clock()
            if next_run < now:
                # Overran one or more slots: run again right away, then keep the new grid
                next_run = now


class FixedRateScheduler:
    """Creates ScheduledTask instances, one daemon thread per task."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock

    def schedule_at_fixed_rate(
        self,
        func: Callable[[], None],
        initial_delay: float,
        period: float,
        name: str = 'ScheduledTask',
    ) -> ScheduledTask:
        task = ScheduledTask(func, initial_delay, period, name=name, clock=self._clock)
        return task.start()
