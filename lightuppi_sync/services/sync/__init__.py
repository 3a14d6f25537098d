"""
LightUpPi server synchronisation.

- HttpFetcher - bounded-timeout GET returning FetchSuccess / FetchFailure
- JsonResourceFetchTask - asynchronous fetch + parse of alarm resources
- ServerHealthPoller - background online/offline server check
- LightUpPiSync - facade combining the above
"""
from lightuppi_sync.services.sync.client import FetchFailure, FetchOutcome, FetchSuccess, HttpFetcher
from lightuppi_sync.services.sync.collaborators import (
    ConfigSettingsStore,
    ConnectivityProbe,
    FetchObserver,
    JsonFileSettingsStore,
    SettingsStore,
    SocketConnectivityProbe,
    StaticConnectivityProbe,
    StaticSettingsStore,
    build_server_address,
    default_connectivity_probe,
)
from lightuppi_sync.services.sync.facade import LightUpPiSync
from lightuppi_sync.services.sync.fetch_task import (
    FetchError,
    FetchErrorKind,
    FetchHandle,
    FetchResult,
    FetchState,
    JsonResourceFetchTask,
    ParsedAlarmsResponse,
    parse_alarms_response,
)
from lightuppi_sync.services.sync.poller import HealthStatus, PollerHandle, ServerHealthPoller

__all__ = [
    'HttpFetcher',
    'FetchSuccess',
    'FetchFailure',
    'FetchOutcome',
    'SettingsStore',
    'StaticSettingsStore',
    'ConfigSettingsStore',
    'JsonFileSettingsStore',
    'ConnectivityProbe',
    'StaticConnectivityProbe',
    'SocketConnectivityProbe',
    'default_connectivity_probe',
    'FetchObserver',
    'build_server_address',
    'JsonResourceFetchTask',
    'FetchHandle',
    'FetchState',
    'FetchError',
    'FetchErrorKind',
    'FetchResult',
    'ParsedAlarmsResponse',
    'parse_alarms_response',
    'ServerHealthPoller',
    'PollerHandle',
    'HealthStatus',
    'LightUpPiSync',
]
