"""
Centralized configuration.

All tunables in one place. Loaded from a .env file and environment
variables, immutable once created. Components take their values as
constructor arguments and fall back to get_config() only for defaults.
"""
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Optional

log = logging.getLogger(__name__)


def _load_dotenv(path: str = '.env') -> None:
    """Load environment from .env file."""
    if not os.path.exists(path):
        return

    try:
        with open(path, encoding='utf-8') as f:
            for line in f:
                line = line.strip()
                if not line or line.startswith('#'):
                    continue
                if '=' not in line:
                    continue

                key, value = line.split('=', 1)
                key = key.strip()
                value = value.strip().strip('"').strip("'")

                # Don't override existing env vars
                if key and key not in os.environ:
                    os.environ[key] = value
    except OSError as e:
        log.warning(f"Failed to load .env: {e}")


def _env_bool(key: str, default: bool = False) -> bool:
    """Get boolean from environment."""
    val = os.getenv(key, '').lower()
    if val in ('true', '1', 'yes', 'on'):
        return True
    if val in ('false', '0', 'no', 'off'):
        return False
    return default


def _env_int(key: str, default: int) -> int:
    """Get integer from environment."""
    try:
        return int(os.getenv(key, str(default)))
    except ValueError:
        return default


def _env_float(key: str, default: float) -> float:
    """Get float from environment."""
    try:
        return float(os.getenv(key, str(default)))
    except ValueError:
        return default


@dataclass(frozen=True)
class ServerConfig:
    """LightUpPi server location."""
    host: str = field(
        default_factory=lambda: os.getenv('LIGHTUPPI_SERVER', '')
    )
    # The server application lives under this directory of the web root
    path_suffix: str = field(
        default_factory=lambda: os.getenv('LIGHTUPPI_PATH', '/LightUpPi/')
    )

    @property
    def is_configured(self) -> bool:
        return bool(self.host)


@dataclass(frozen=True)
class HttpConfig:
    """HTTP client timeouts (seconds) and worker pool size."""
    connect_timeout: float = field(
        default_factory=lambda: _env_float('LIGHTUPPI_CONNECT_TIMEOUT', 15.0)
    )
    read_timeout: float = field(
        default_factory=lambda: _env_float('LIGHTUPPI_READ_TIMEOUT', 10.0)
    )
    max_workers: int = field(
        default_factory=lambda: _env_int('LIGHTUPPI_FETCH_WORKERS', 4)
    )


@dataclass(frozen=True)
class PollerConfig:
    """Background server check."""
    interval: float = field(
        default_factory=lambda: _env_float('LIGHTUPPI_POLL_INTERVAL', 30.0)
    )


@dataclass(frozen=True)
class ConnectivityConfig:
    """Target of the outbound connectivity probe."""
    probe_host: str = field(
        default_factory=lambda: os.getenv('LIGHTUPPI_PROBE_HOST', '8.8.8.8')
    )
    probe_port: int = field(
        default_factory=lambda: _env_int('LIGHTUPPI_PROBE_PORT', 53)
    )
    probe_timeout: float = field(
        default_factory=lambda: _env_float('LIGHTUPPI_PROBE_TIMEOUT', 1.5)
    )
    # Skip the probe entirely and assume the network is up
    assume_connected: bool = field(
        default_factory=lambda: _env_bool('LIGHTUPPI_ASSUME_CONNECTED', False)
    )


@dataclass(frozen=True)
class Config:
    """Main configuration."""
    server: ServerConfig = field(default_factory=ServerConfig)
    http: HttpConfig = field(default_factory=HttpConfig)
    poller: PollerConfig = field(default_factory=PollerConfig)
    connectivity: ConnectivityConfig = field(default_factory=ConnectivityConfig)
    log_level: str = field(
        default_factory=lambda: os.getenv('LIGHTUPPI_LOG_LEVEL', 'INFO').upper()
    )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary (for debugging)."""
        return {
            'server': {
                'host': self.server.host,
                'path_suffix': self.server.path_suffix,
                'configured': self.server.is_configured,
            },
            'http': {
                'connect_timeout': self.http.connect_timeout,
                'read_timeout': self.http.read_timeout,
                'max_workers': self.http.max_workers,
            },
            'poller': {
                'interval': self.poller.interval,
            },
            'connectivity': {
                'probe_host': self.connectivity.probe_host,
                'probe_port': self.connectivity.probe_port,
                'probe_timeout': self.connectivity.probe_timeout,
                'assume_connected': self.connectivity.assume_connected,
            },
            'log_level': self.log_level,
        }


# Global singleton config
_config: Optional[Config] = None


def get_config() -> Config:
    """Get configuration singleton."""
    global _config
    if _config is None:
        _load_dotenv()
        _config = Config()
    return _config


def reload_config() -> Config:
    """Force reload configuration (for testing)."""
    global _config
    _load_dotenv()
    _config = Config()
    return _config


def configure_logging(level: Optional[str] = None) -> None:
    """Configure root logging for applications embedding the sync client."""
    level_name = (level or get_config().log_level).upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format='%(asctime)s %(levelname)s %(name)s - %(message)s',
    )
