"""
One-shot asynchronous JSON fetch.

Checks connectivity, downloads on a worker thread, parses the alarms wrapper
and posts exactly one result back to the caller's callback context:
    Idle -> ConnectivityChecked -> Fetching -> Parsing -> Delivered
"""
import json
import logging
import threading
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional, Union

from lightuppi_sync.config import get_config
from lightuppi_sync.services.sync.client import FetchFailure, FetchOutcome, HttpFetcher
from lightuppi_sync.services.sync.collaborators import ConnectivityProbe, FetchObserver
from lightuppi_sync.utils.threading import CallbackContext

log = logging.getLogger(__name__)


class FetchErrorKind(Enum):
    """Why a one-shot fetch failed."""
    NO_CONNECTIVITY = 'no_connectivity'
    NETWORK = 'network'
    MALFORMED_RESPONSE = 'malformed_response'


class FetchState(Enum):
    IDLE = 'idle'
    CONNECTIVITY_CHECKED = 'connectivity_checked'
    FETCHING = 'fetching'
    PARSING = 'parsing'
    DELIVERED = 'delivered'


@dataclass(frozen=True)
class ParsedAlarmsResponse:
    """Alarm records from the server's {"alarms": [...]} wrapper, in order."""
    alarms: list[Any] = field(default_factory=list)
    url: str = ''
    status_code: int = 200

    @property
    def ok(self) -> bool:
        return True

    def __len__(self) -> int:
        return len(self.alarms)


@dataclass(frozen=True)
class FetchError:
    """Typed failure delivered instead of a ParsedAlarmsResponse."""
    kind: FetchErrorKind
    reason: str = ''
    url: str = ''

    @property
    def ok(self) -> bool:
        return False

    @property
    def is_no_connectivity(self) -> bool:
        return self.kind == FetchErrorKind.NO_CONNECTIVITY

    @property
    def is_network(self) -> bool:
        return self.kind == FetchErrorKind.NETWORK

    @property
    def is_malformed(self) -> bool:
        return self.kind == FetchErrorKind.MALFORMED_RESPONSE


FetchResult = Union[ParsedAlarmsResponse, FetchError]
ResultCallback = Callable[[FetchResult], None]


def parse_alarms_response(body: str, url: str = '', status_code: int = 200) -> FetchResult:
    """
    Extract the alarms array from a response body.

    Returns:
        ParsedAlarmsResponse, or FetchError(MALFORMED_RESPONSE) when the body
        is not a JSON object holding an `alarms` array
    """
    # A non-200 answer usually means the host is up but is not a LightUpPi server
    suffix = f" (HTTP {status_code})" if status_code != 200 else ''

    try:
        wrapper = json.loads(body)
    except (TypeError, ValueError, RecursionError) as e:
        return FetchError(FetchErrorKind.MALFORMED_RESPONSE, f"invalid JSON: {e}{suffix}", url)

    if not isinstance(wrapper, dict):
        return FetchError(
            FetchErrorKind.MALFORMED_RESPONSE,
            f"expected JSON object, got {type(wrapper).__name__}{suffix}",
            url,
        )
    if 'alarms' not in wrapper:
        return FetchError(FetchErrorKind.MALFORMED_RESPONSE, f"missing 'alarms' field{suffix}", url)

    alarms = wrapper['alarms']
    if not isinstance(alarms, list):
        return FetchError(
            FetchErrorKind.MALFORMED_RESPONSE,
            f"'alarms' is {type(alarms).__name__}, not an array{suffix}",
            url,
        )

    return ParsedAlarmsResponse(alarms=list(alarms), url=url, status_code=status_code)


class FetchHandle:
    """
    Handle for one fetch_json() invocation.

    cancel() is honoured before the request is sent and again at delivery,
    on the callback context: a cancelled fetch never calls on_result.
    """

    def __init__(self, url: str):
        self.url = url
        self.state = FetchState.IDLE
        self._result: Optional[FetchResult] = None
        self._cancelled = threading.Event()
        self._done = threading.Event()
        self._future: Optional[Future] = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    @property
    def done(self) -> bool:
        return self._done.is_set()

    @property
    def result(self) -> Optional[FetchResult]:
        """Delivered result, None while pending or after cancellation."""
        return self._result

    def cancel(self) -> bool:
        """
        Cancel the fetch.

        Returns:
            False if the result was already delivered
        """
        if self._done.is_set():
            return False
        # The worker still runs and posts, so observer hooks stay balanced
        self._cancelled.set()
        return True

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until delivered or dropped. Never call from the callback context's own thread."""
        return self._done.wait(timeout)

    def _finish(self, result: Optional[FetchResult]) -> None:
        self._result = result
        self.state = FetchState.DELIVERED
        self._done.set()


class JsonResourceFetchTask:
    """
    Runs "fetch + parse" operations off the caller's thread.

    Features:
    - Connectivity gate before any network activity
    - Worker pool for the blocking GET
    - Exactly one delivery per call, always through the caller's context
    - Optional started/finished observer for busy indicators
    """

    def __init__(
        self,
        connectivity: ConnectivityProbe,
        fetcher: Optional[HttpFetcher] = None,
        executor: Optional[Executor] = None,
        max_workers: Optional[int] = None,
    ):
        cfg = get_config().http
        self._connectivity = connectivity
        self._fetcher = fetcher or HttpFetcher(cfg.connect_timeout, cfg.read_timeout)
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=max_workers or cfg.max_workers,
            thread_name_prefix='lightuppi-fetch',
        )

    @property
    def fetcher(self) -> HttpFetcher:
        return self._fetcher

    def fetch_json(
        self,
        url: str,
        context: CallbackContext,
        on_result: ResultCallback,
        observer: Optional[FetchObserver] = None,
    ) -> FetchHandle:
        """
        Start an asynchronous fetch of an alarms resource.

        Args:
            url: Resource URL
            context: Context on which observer hooks and on_result run
            on_result: Receives a ParsedAlarmsResponse or a FetchError
            observer: Optional started/finished hooks

        Returns:
            FetchHandle for cancellation and inspection
        """
        handle = FetchHandle(url)

        if not self._connectivity.is_connected():
            log.info(f"No network connection, not fetching {url}")
            error = FetchError(FetchErrorKind.NO_CONNECTIVITY, 'no network connection', url)
            self._post_result(handle, context, on_result, error, observer=None)
            return handle

        handle.state = FetchState.CONNECTIVITY_CHECKED

        if observer is not None:
            context.post(observer.on_fetch_started)

        try:
            handle._future = self._executor.submit(
                self._run, handle, context, on_result, observer
            )
        except RuntimeError as e:
            # Executor already shut down
            log.error(f"Cannot schedule fetch of {url}: {e}")
            error = FetchError(FetchErrorKind.NETWORK, f"fetch not scheduled: {e}", url)
            self._post_result(handle, context, on_result, error, observer)

        return handle

    def close(self, wait: bool = False) -> None:
        """Shut down the worker pool if this task created it."""
        if self._owns_executor:
            self._executor.shutdown(wait=wait)

    def _run(
        self,
        handle: FetchHandle,
        context: CallbackContext,
        on_result: ResultCallback,
        observer: Optional[FetchObserver],
    ) -> None:
        url = handle.url
        try:
            if handle.cancelled:
                log.debug(f"Fetch of {url} cancelled before start")
                result: Optional[FetchResult] = None
            else:
                handle.state = FetchState.FETCHING
                outcome = self._fetcher.fetch(url)
                handle.state = FetchState.PARSING
                result = self._to_result(outcome)
        except Exception as e:
            log.exception(f"Unexpected error fetching {url}")
            result = FetchError(FetchErrorKind.NETWORK, f"unexpected error: {e}", url)

        self._post_result(handle, context, on_result, result, observer)

    def _to_result(self, outcome: FetchOutcome) -> FetchResult:
        if isinstance(outcome, FetchFailure):
            return FetchError(FetchErrorKind.NETWORK, outcome.reason, outcome.url)

        log.debug(f"json: {outcome.body!r}")
        result = parse_alarms_response(outcome.body, outcome.url, outcome.status_code)
        if isinstance(result, FetchError):
            log.warning(f"Malformed response from {outcome.url}: {result.reason}")
        return result

    def _post_result(
        self,
        handle: FetchHandle,
        context: CallbackContext,
        on_result: ResultCallback,
        result: Optional[FetchResult],
        observer: Optional[FetchObserver],
    ) -> None:
        def deliver() -> None:
            if observer is not None:
                try:
                    observer.on_fetch_finished()
                except Exception:
                    log.exception(f"Observer failed finishing fetch of {handle.url}")
            if handle.cancelled or result is None:
                log.debug(f"Dropping result for cancelled fetch of {handle.url}")
                handle._finish(None)
                return
            handle._finish(result)
            on_result(result)

        context.post(deliver)
