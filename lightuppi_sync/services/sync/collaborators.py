"""
Collaborator interfaces - settings, connectivity and busy-indicator hooks.

The sync core only talks to the outside world through these contracts.
"""
import json
import logging
import socket
from abc import ABC, abstractmethod
from typing import Optional

from lightuppi_sync.config import get_config

log = logging.getLogger(__name__)


def build_server_address(host: str, path_suffix: Optional[str] = None) -> str:
    """
    Base URL of the LightUpPi application, e.g. 'http://192.168.1.20/LightUpPi/'.

    The host may be a bare host/IP (http:// is assumed) or already carry a scheme.
    """
    if path_suffix is None:
        path_suffix = get_config().server.path_suffix
    host = (host or '').strip().rstrip('/')
    if not host.startswith(('http://', 'https://')):
        host = 'http://' + host
    address = host + path_suffix
    log.debug(f"LightUpPi server address: {address}")
    return address


class SettingsStore(ABC):
    """Read-only access to the configured server host/IP."""

    @abstractmethod
    def get_server_host(self) -> str:
        """
        Return the current server host or IP, e.g. '192.168.1.20'.

        Called on every operation; implementations must not cache.
        """
        pass


class ConnectivityProbe(ABC):
    """Reports whether outbound network access is available right now."""

    @abstractmethod
    def is_connected(self) -> bool:
        pass


class FetchObserver:
    """
    Optional lifecycle hooks around a one-shot fetch.

    Both hooks run on the caller's callback context; override them to show
    and hide a busy indicator.
    """

    def on_fetch_started(self) -> None:
        pass

    def on_fetch_finished(self) -> None:
        pass


class StaticSettingsStore(SettingsStore):
    """Settings store holding a host set in code."""

    def __init__(self, host: str = ''):
        self.host = host

    def get_server_host(self) -> str:
        return self.host


class ConfigSettingsStore(SettingsStore):
    """Reads the host from the LIGHTUPPI_SERVER configuration each call."""

    def get_server_host(self) -> str:
        return get_config().server.host


class JsonFileSettingsStore(SettingsStore):
    """
    Settings persisted as a JSON object in a file.

    The file is re-read on every call so edits made by another process
    (a settings screen, a text editor) apply to the next operation.
    """

    DEFAULT_KEY = 'lightuppi_server'

    def __init__(self, file_path: str, key: str = DEFAULT_KEY, default: str = ''):
        self.file_path = file_path
        self.key = key
        self.default = default

    def get_server_host(self) -> str:
        try:
            with open(self.file_path, encoding='utf-8') as f:
                data = json.load(f)
        except FileNotFoundError:
            return self.default
        except (OSError, ValueError) as e:
            log.warning(f"Cannot read settings from {self.file_path}: {e}")
            return self.default

        if not isinstance(data, dict):
            log.warning(f"Settings file {self.file_path} is not a JSON object")
            return self.default

        value = data.get(self.key, self.default)
        return str(value).strip() if value is not None else self.default


class StaticConnectivityProbe(ConnectivityProbe):
    """Probe with a fixed answer; flip `connected` to simulate network loss."""

    def __init__(self, connected: bool = True):
        self.connected = connected

    def is_connected(self) -> bool:
        return self.connected


class SocketConnectivityProbe(ConnectivityProbe):
    """
    Checks connectivity with a TCP connect to a well-known host.

    Defaults come from the connectivity section of the configuration
    (a public DNS resolver on port 53).
    """

    def __init__(
        self,
        host: Optional[str] = None,
        port: Optional[int] = None,
        timeout: Optional[float] = None,
    ):
        cfg = get_config().connectivity
        self.host = host if host is not None else cfg.probe_host
        self.port = port if port is not None else cfg.probe_port
        self.timeout = timeout if timeout is not None else cfg.probe_timeout

    def is_connected(self) -> bool:
        try:
            with socket.create_connection((self.host, self.port), timeout=self.timeout):
                return True
        except OSError as e:
            log.debug(f"Connectivity probe to {self.host}:{self.port} failed: {e}")
            return False


def default_connectivity_probe() -> ConnectivityProbe:
    """Probe selected by configuration."""
    if get_config().connectivity.assume_connected:
        return StaticConnectivityProbe(True)
    return SocketConnectivityProbe()
