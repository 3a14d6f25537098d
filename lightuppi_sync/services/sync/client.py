"""
LightUpPi HTTP client.

Single bounded-timeout GET that reports its outcome as a value:
- FetchSuccess for any HTTP response, whatever the status code
- FetchFailure for timeouts, refused connections, DNS errors, bad URLs
Never raises to the caller.
"""
import logging
import threading
from dataclasses import dataclass
from typing import Any, Optional, Union

import requests

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class FetchSuccess:
    """Server answered; body is the decoded response text."""
    url: str
    status_code: int
    body: str = ''

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class FetchFailure:
    """No HTTP response was obtained."""
    url: str
    reason: str
    exception: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return False


FetchOutcome = Union[FetchSuccess, FetchFailure]


class HttpFetcher:
    """
    HTTP GET with connect/read timeouts.

    Features:
    - Errors returned as FetchFailure, never raised
    - Response always closed, including on errors
    - Optional shared requests.Session
    - Thread-safe; independent requests may run concurrently
    """

    DEFAULT_CONNECT_TIMEOUT = 15.0  # seconds
    DEFAULT_READ_TIMEOUT = 10.0  # seconds

    def __init__(
        self,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
        read_timeout: float = DEFAULT_READ_TIMEOUT,
        session: Optional[requests.Session] = None,
    ):
        self._connect_timeout = connect_timeout
        self._read_timeout = read_timeout
        self._session = session

        self._lock = threading.Lock()

        # Stats
        self._request_count = 0
        self._errors = 0

    @property
    def connect_timeout(self) -> float:
        return self._connect_timeout

    @property
    def read_timeout(self) -> float:
        return self._read_timeout

    def fetch(
        self,
        url: str,
        connect_timeout: Optional[float] = None,
        read_timeout: Optional[float] = None,
        read_body: bool = True,
        session: Optional[requests.Session] = None,
    ) -> FetchOutcome:
        """
        GET a URL.

        Args:
            url: Absolute http(s) URL
            connect_timeout: Seconds to establish the connection
            read_timeout: Seconds to wait between bytes of the response
            read_body: Download and decode the body; False only reads the status line
            session: Session to use instead of the fetcher's own

        Returns:
            FetchSuccess or FetchFailure
        """
        timeout = (
            connect_timeout if connect_timeout is not None else self._connect_timeout,
            read_timeout if read_timeout is not None else self._read_timeout,
        )
        http = session or self._session or requests

        with self._lock:
            self._request_count += 1

        try:
            with http.get(url, timeout=timeout, stream=True) as response:
                status = response.status_code
                log.debug(f"GET {url} -> {status}")
                body = response.text if read_body else ''
                return FetchSuccess(url=url, status_code=status, body=body)
        except requests.Timeout as e:
            return self._failure(url, f"timeout: {e}", e)
        except requests.ConnectionError as e:
            return self._failure(url, f"connection error: {e}", e)
        except requests.RequestException as e:
            return self._failure(url, f"request error: {e}", e)
        except (ValueError, OSError) as e:
            return self._failure(url, f"{type(e).__name__}: {e}", e)

    def stats(self) -> dict[str, Any]:
        """Get client statistics."""
        with self._lock:
            return {
                'requests': self._request_count,
                'errors': self._errors,
            }

    def _failure(self, url: str, reason: str, exc: BaseException) -> FetchFailure:
        with self._lock:
            self._errors += 1
        log.warning(f"GET {url} failed: {reason}")
        return FetchFailure(url=url, reason=reason, exception=exc)
