"""
LightUpPi sync client.

Keeps a LightUpPi alarm server in view: background online/offline checks and
asynchronous alarm fetches delivered to a consumer's callback context.
"""
from lightuppi_sync.config import Config, configure_logging, get_config, reload_config
from lightuppi_sync.services.sync import (
    FetchError,
    FetchErrorKind,
    FetchHandle,
    FetchObserver,
    HealthStatus,
    HttpFetcher,
    JsonFileSettingsStore,
    LightUpPiSync,
    ParsedAlarmsResponse,
    ServerHealthPoller,
    SocketConnectivityProbe,
    StaticConnectivityProbe,
    StaticSettingsStore,
)
from lightuppi_sync.utils.threading import (
    CallbackContext,
    FixedRateScheduler,
    InlineCallbackContext,
    QueueCallbackContext,
)

__version__ = '0.1.0'

__all__ = [
    'Config',
    'get_config',
    'reload_config',
    'configure_logging',
    'LightUpPiSync',
    'ServerHealthPoller',
    'HttpFetcher',
    'HealthStatus',
    'FetchError',
    'FetchErrorKind',
    'FetchHandle',
    'FetchObserver',
    'ParsedAlarmsResponse',
    'StaticSettingsStore',
    'JsonFileSettingsStore',
    'SocketConnectivityProbe',
    'StaticConnectivityProbe',
    'CallbackContext',
    'QueueCallbackContext',
    'InlineCallbackContext',
    'FixedRateScheduler',
]
