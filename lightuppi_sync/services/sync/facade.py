"""
LightUpPi synchronisation facade.

Retrieves and deletes alarms on the LightUpPi server and controls the
background server check, on behalf of one consumer context.
"""
import logging
from concurrent.futures import Executor
from typing import Callable, Optional

from lightuppi_sync.config import get_config
from lightuppi_sync.services.sync.client import HttpFetcher
from lightuppi_sync.services.sync.collaborators import (
    ConnectivityProbe,
    FetchObserver,
    SettingsStore,
    build_server_address,
)
from lightuppi_sync.services.sync.fetch_task import FetchHandle, JsonResourceFetchTask, ResultCallback
from lightuppi_sync.services.sync.poller import ServerHealthPoller
from lightuppi_sync.utils.threading import CallbackContext, FixedRateScheduler

log = logging.getLogger(__name__)


class LightUpPiSync:
    """
    Public sync surface.

    Every request resolves the server address afresh from the settings store,
    so a changed host applies to the next call.

    Example:
        sync = LightUpPiSync(context, StaticSettingsStore('192.168.1.20'), SocketConnectivityProbe())
        sync.list_alarms(lambda result: print(result))
        sync.start_server_check(context, show_online, show_offline)
    """

    def __init__(
        self,
        context: CallbackContext,
        settings: SettingsStore,
        connectivity: ConnectivityProbe,
        observer: Optional[FetchObserver] = None,
        fetcher: Optional[HttpFetcher] = None,
        executor: Optional[Executor] = None,
        scheduler: Optional[FixedRateScheduler] = None,
        poll_interval: Optional[float] = None,
        path_suffix: Optional[str] = None,
    ):
        cfg = get_config()
        self._context = context
        self._settings = settings
        self._observer = observer
        self._path_suffix = path_suffix if path_suffix is not None else cfg.server.path_suffix

        fetcher = fetcher or HttpFetcher(cfg.http.connect_timeout, cfg.http.read_timeout)
        self._fetch_task = JsonResourceFetchTask(connectivity, fetcher=fetcher, executor=executor)
        self._poller = ServerHealthPoller(
            settings,
            connectivity,
            fetcher=fetcher,
            scheduler=scheduler,
            poll_interval=poll_interval,
            path_suffix=self._path_suffix,
        )

    @property
    def poller(self) -> ServerHealthPoller:
        return self._poller

    def get_server_address(self) -> str:
        """Server address to the LightUpPi app root folder."""
        return build_server_address(self._settings.get_server_host(), self._path_suffix)

    def get_alarm(self, alarm_id: int, on_result: ResultCallback) -> FetchHandle:
        """Get an alarm from the LightUpPi server."""
        url = f"{self.get_server_address()}alarm?action=get&id={_alarm_id(alarm_id)}"
        return self._get_json(url, on_result)

    def delete_alarm(self, alarm_id: int, on_result: ResultCallback) -> FetchHandle:
        """Delete an alarm from the LightUpPi server."""
        url = f"{self.get_server_address()}alarm?action=delete&id={_alarm_id(alarm_id)}"
        return self._get_json(url, on_result)

    def list_alarms(self, on_result: ResultCallback) -> FetchHandle:
        """Get all the alarms from the LightUpPi server."""
        return self._get_json(f"{self.get_server_address()}alarms", on_result)

    def start_server_check(
        self,
        context: CallbackContext,
        on_online: Callable[[], None],
        on_offline: Callable[[], None],
    ) -> bool:
        """Start the background server check, see ServerHealthPoller.start()."""
        return self._poller.start(context, on_online, on_offline)

    def stop_server_check(self) -> None:
        self._poller.stop()

    def close(self) -> None:
        """Stop the server check and release the worker pool (if owned)."""
        self._poller.stop()
        self._fetch_task.close()

    def __enter__(self) -> 'LightUpPiSync':
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def _get_json(self, url: str, on_result: ResultCallback) -> FetchHandle:
        return self._fetch_task.fetch_json(url, self._context, on_result, self._observer)


def _alarm_id(alarm_id: int) -> int:
    # bool is an int subclass but never a valid id
    if isinstance(alarm_id, bool) or not isinstance(alarm_id, int):
        raise TypeError(f"alarm_id must be int, got {type(alarm_id).__name__}")
    return alarm_id
