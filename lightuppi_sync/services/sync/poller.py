"""
Background LightUpPi server check.

Polls the server address at a fixed rate and posts "online" (HTTP 200) or
"offline" (anything else) to the consumer's callback context.
"""
import logging
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional

import requests

from lightuppi_sync.config import get_config
from lightuppi_sync.services.sync.client import FetchSuccess, HttpFetcher
from lightuppi_sync.services.sync.collaborators import (
    ConnectivityProbe,
    SettingsStore,
    build_server_address,
)
from lightuppi_sync.utils.threading import AtomicValue, CallbackContext, FixedRateScheduler

log = logging.getLogger(__name__)


class HealthStatus(Enum):
    ONLINE = 'online'
    OFFLINE = 'offline'


@dataclass
class PollerHandle:
    """Resources of one active polling loop, owned by its ServerHealthPoller."""
    server_address: str
    context: CallbackContext
    on_online: Callable[[], None]
    on_offline: Callable[[], None]
    session: requests.Session = field(default_factory=requests.Session)
    task: Any = None
    started_at: float = field(default_factory=time.time)
    _cancelled: threading.Event = field(default_factory=threading.Event, repr=False)

    @property
    def active(self) -> bool:
        return not self._cancelled.is_set()

    def cancel(self) -> None:
        """Stop future ticks and turn pending deliveries into no-ops."""
        self._cancelled.set()
        if self.task is not None:
            self.task.cancel()
        # Drops idle pooled connections; a request in flight runs until its timeout
        self.session.close()


class ServerHealthPoller:
    """
    Background server reachability check.

    Features:
    - At most one polling loop per instance
    - Fixed-rate ticks (start-to-start), serialized
    - Every tick catches all errors and maps them to OFFLINE
    - No deliveries once stop() has returned
    """

    DEFAULT_POLL_INTERVAL = 30.0  # seconds
    HEALTHY_STATUS = 200

    def __init__(
        self,
        settings: SettingsStore,
        connectivity: ConnectivityProbe,
        fetcher: Optional[HttpFetcher] = None,
        scheduler: Optional[FixedRateScheduler] = None,
        poll_interval: Optional[float] = None,
        path_suffix: Optional[str] = None,
    ):
        """
        Args:
            settings: Source of the server host, read on every start()
            connectivity: Network availability gate
            fetcher: HTTP client; its timeouts apply to every tick
            scheduler: Anything with schedule_at_fixed_rate(func, initial_delay, period, name)
            poll_interval: Seconds between the starts of two ticks
            path_suffix: Application path appended to the host
        """
        cfg = get_config()
        self._settings = settings
        self._connectivity = connectivity
        self._fetcher = fetcher or HttpFetcher(cfg.http.connect_timeout, cfg.http.read_timeout)
        self._scheduler = scheduler or FixedRateScheduler()
        self._poll_interval = poll_interval if poll_interval is not None else cfg.poller.interval
        self._path_suffix = path_suffix
        if self._poll_interval <= 0:
            raise ValueError(f"poll_interval must be positive, got {self._poll_interval}")

        self._handle: Optional[PollerHandle] = None
        self._lock = threading.Lock()
        self._last_status: AtomicValue[Optional[HealthStatus]] = AtomicValue(None)

        # Stats, written from the scheduler thread
        self._cycles = AtomicValue(0)
        self._last_poll_time: AtomicValue[Optional[float]] = AtomicValue(None)
        self._consecutive_failures = AtomicValue(0)

    @property
    def poll_interval(self) -> float:
        return self._poll_interval

    @property
    def last_status(self) -> Optional[HealthStatus]:
        return self._last_status.get()

    def get_server_address(self) -> str:
        return build_server_address(self._settings.get_server_host(), self._path_suffix)

    def start(
        self,
        context: CallbackContext,
        on_online: Callable[[], None],
        on_offline: Callable[[], None],
    ) -> bool:
        """
        Start the background server check.

        Without network connectivity, or while a loop is already running,
        nothing is scheduled and on_offline is posted once instead.

        Returns:
            True if a new polling loop was scheduled
        """
        server_address = self.get_server_address()
        connected = self._connectivity.is_connected()

        handle = None
        with self._lock:
            already_running = self._handle is not None and self._handle.active
            if connected and not already_running:
                handle = PollerHandle(
                    server_address=server_address,
                    context=context,
                    on_online=on_online,
                    on_offline=on_offline,
                )
                self._handle = handle

        # Callbacks and scheduling run without the lock; an inline context may re-enter
        if handle is None:
            if already_running:
                log.warning("Server check already running, reporting offline")
            else:
                log.info("No network connection, reporting offline")
            context.post(on_offline)
            return False

        handle.task = self._scheduler.schedule_at_fixed_rate(
            lambda: self._tick(handle),
            0,
            self._poll_interval,
            name='ServerHealthPoller',
        )
        if not handle.active:
            # stop() ran before the task existed
            handle.task.cancel()
            return False

        log.info(f"Server check started for {server_address} every {self._poll_interval}s")
        return True

    def stop(self) -> None:
        """Stop the background server check. Safe to call when not running."""
        with self._lock:
            handle = self._handle
            self._handle = None

        if handle is None or not handle.active:
            return
        handle.cancel()
        log.info("Server check stopped")

    def is_running(self) -> bool:
        with self._lock:
            return self._handle is not None and self._handle.active

    def check_now(self) -> HealthStatus:
        """Run one synchronous check against the current address, without delivery."""
        return self._check(self.get_server_address())

    def stats(self) -> dict:
        """Get poller statistics."""
        last = self._last_status.get()
        return {
            'running': self.is_running(),
            'cycles': self._cycles.get(),
            'last_poll': self._last_poll_time.get(),
            'consecutive_failures': self._consecutive_failures.get(),
            'last_status': last.value if last else None,
            'client': self._fetcher.stats(),
        }

    def _tick(self, handle: PollerHandle) -> None:
        """Single poll cycle, run on the scheduler thread."""
        if not handle.active:
            return

        self._cycles.update(lambda n: n + 1)
        self._last_poll_time.set(time.time())

        try:
            status = self._check(handle.server_address, handle.session)
        except Exception:
            log.exception(f"Server check of {handle.server_address} raised")
            status = HealthStatus.OFFLINE

        if not handle.active:
            # A newer loop may own the status by now
            log.debug("Server check stopped during tick, result dropped")
            return

        if status == HealthStatus.ONLINE:
            self._consecutive_failures.set(0)
        else:
            self._consecutive_failures.update(lambda n: n + 1)
        self._last_status.set(status)

        callback = handle.on_online if status == HealthStatus.ONLINE else handle.on_offline
        handle.context.post(lambda: self._deliver(handle, callback))

    def _check(self, server_address: str, session: Optional[requests.Session] = None) -> HealthStatus:
        outcome = self._fetcher.fetch(server_address, read_body=False, session=session)
        if isinstance(outcome, FetchSuccess) and outcome.status_code == self.HEALTHY_STATUS:
            log.debug("Response 200")
            return HealthStatus.ONLINE

        if isinstance(outcome, FetchSuccess):
            log.debug(f"Response NOT 200: {outcome.status_code}")
        else:
            log.debug(f"Response NOT 200: {outcome.reason}")
        return HealthStatus.OFFLINE

    @staticmethod
    def _deliver(handle: PollerHandle, callback: Callable[[], None]) -> None:
        # Runs on the callback context; stop() may have happened after the post
        if not handle.active:
            return
        callback()
