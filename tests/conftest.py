"""
Pytest configuration and fixtures.
"""
import os
import sys
import threading
from unittest.mock import MagicMock

import pytest

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from lightuppi_sync.services.sync.collaborators import StaticConnectivityProbe, StaticSettingsStore
from lightuppi_sync.utils.threading import QueueCallbackContext


class ManualTask:
    """Fixed-rate task driven by ManualScheduler.advance()."""

    def __init__(self, func, next_due, period, name):
        self.func = func
        self.next_due = next_due
        self.period = period
        self.name = name
        self.runs = 0
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class ManualScheduler:
    """
    Scheduler on simulated time.

    Ticks only run inside advance(), synchronously on the test thread.
    """

    def __init__(self):
        self.now = 0.0
        self.tasks = []

    def schedule_at_fixed_rate(self, func, initial_delay, period, name='ManualTask'):
        task = ManualTask(func, self.now + initial_delay, period, name)
        self.tasks.append(task)
        return task

    @property
    def active_tasks(self):
        return [t for t in self.tasks if not t.cancelled]

    def advance(self, seconds):
        """Move simulated time forward, running every tick that falls due."""
        target = self.now + seconds
        while True:
            due = [t for t in self.active_tasks if t.next_due <= target]
            if not due:
                break
            task = min(due, key=lambda t: t.next_due)
            self.now = max(self.now, task.next_due)
            task.runs += 1
            task.func()
            task.next_due += task.period
        self.now = target


def make_response(status_code=200, text=''):
    """requests.Response stand-in usable as a context manager."""
    response = MagicMock()
    response.status_code = status_code
    response.text = text
    response.__enter__.return_value = response
    response.__exit__.return_value = False
    return response


def make_session(*results):
    """Session whose get() returns (or raises) the given results in order."""
    session = MagicMock()
    session.get.side_effect = list(results)
    return session


@pytest.fixture
def manual_scheduler():
    return ManualScheduler()


@pytest.fixture
def context():
    """Looper-style callback context drained by the test thread."""
    return QueueCallbackContext(name='test')


@pytest.fixture
def settings():
    return StaticSettingsStore('lightuppi.local')


@pytest.fixture
def connectivity():
    return StaticConnectivityProbe(True)


@pytest.fixture
def recorder():
    """Collects callback invocations together with the thread they ran on."""

    class Recorder:
        def __init__(self):
            self.calls = []
            self._lock = threading.Lock()

        def __call__(self, *args):
            with self._lock:
                self.calls.append((args, threading.current_thread().name))

        def named(self, name):
            return lambda *args: self(name, *args)

        @property
        def values(self):
            with self._lock:
                return [args for args, _ in self.calls]

        @property
        def threads(self):
            with self._lock:
                return [thread for _, thread in self.calls]

    return Recorder()


@pytest.fixture
def clean_environment(monkeypatch):
    """Clean environment for testing."""
    for key in list(os.environ):
        if key.startswith('LIGHTUPPI_'):
            monkeypatch.delenv(key, raising=False)
    yield
    from lightuppi_sync.config import reload_config
    # .env loading writes to os.environ directly
    for key in list(os.environ):
        if key.startswith('LIGHTUPPI_'):
            del os.environ[key]
    monkeypatch.undo()
    reload_config()


# Markers for test categories
def pytest_configure(config):
    config.addinivalue_line("markers", "slow: marks tests as slow")
    config.addinivalue_line("markers", "integration: marks integration tests")


class FakeLightUpPiServer:
    """Flask app standing in for a LightUpPi server, served on a local port."""

    def __init__(self):
        from flask import Flask, Response, request

        self.health_status = 200
        self.alarms_status = 200
        self.alarms_body = '{"alarms": []}'
        self.requests = []
        self.host = None
        self._server = None
        self._thread = None

        app = Flask('fake_lightuppi')

        @app.route('/LightUpPi/')
        def root():
            self.requests.append(('root', {}))
            return Response('', status=self.health_status)

        @app.route('/LightUpPi/alarms')
        def alarms():
            self.requests.append(('alarms', {}))
            return Response(self.alarms_body, status=self.alarms_status, mimetype='application/json')

        @app.route('/LightUpPi/alarm')
        def alarm():
            self.requests.append(('alarm', dict(request.args)))
            return Response(self.alarms_body, status=self.alarms_status, mimetype='application/json')

        self.app = app

    def start(self):
        from werkzeug.serving import make_server

        self._server = make_server('127.0.0.1', 0, self.app, threaded=True)
        self.host = f"127.0.0.1:{self._server.server_port}"
        self._thread = threading.Thread(target=self._server.serve_forever, daemon=True)
        self._thread.start()
        return self

    def stop(self):
        if self._server is not None:
            self._server.shutdown()
            self._server.server_close()
            self._thread.join(timeout=5)
            self._server = None


@pytest.fixture
def lightuppi_server():
    """Running fake LightUpPi server; `host` goes into a settings store."""
    server = FakeLightUpPiServer().start()
    yield server
    server.stop()
