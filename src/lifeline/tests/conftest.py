"""Pytest configuration and shared fixtures"""

import os
import tempfile
from typing import Any, Dict, List, Optional
from unittest.mock import patch

import pytest

from lifeline.transport.base import BaseChannel, BaseSession, BaseTransfer, HostIdentity
from lifeline.transport.ssh import SSHConnection


class FakeChannel(BaseChannel):
    """Scripted channel: replays output and an exit status when the session loops"""

    def __init__(self, stdout: Optional[List[bytes]] = None, extended: Optional[List[tuple]] = None,
                 exit_status: Optional[int] = 0, pty_ok: bool = True, exec_ok: bool = True):
        self.stdout = stdout or []
        self.extended = extended or []
        self.exit_status = exit_status
        self.pty_ok = pty_ok
        self.exec_ok = exec_ok
        self.command = None
        self.pty_requested = False
        self.delivered = False
        self.events: List[Any] = []
        self.data_handlers = []
        self.extended_handlers = []
        self.request_handlers: Dict[str, Any] = {}

    def request_pty(self, callback):
        self.pty_requested = True
        self.events.append("pty")
        callback(self, self.pty_ok)

    def exec_command(self, command, callback):
        self.command = command
        self.events.append("exec")
        callback(self, self.exec_ok)

    def on_data(self, callback):
        self.data_handlers.append(callback)

    def on_extended_data(self, callback):
        self.extended_handlers.append(callback)

    def on_request(self, name, callback):
        self.request_handlers[name] = callback

    def send_data(self, data):
        self.events.append(("send", data))

    def flush(self):
        self.events.append("flush")

    def eof(self):
        self.events.append("eof")

    def deliver(self):
        if self.delivered:
            return
        self.delivered = True
        for data in self.stdout:
            for handler in self.data_handlers:
                handler(self, data)
        for data_type, data in self.extended:
            for handler in self.extended_handlers:
                handler(self, data_type, data)
        if self.exit_status is not None and "exit-status" in self.request_handlers:
            self.request_handlers["exit-status"](self, self.exit_status)


class FakeSession(BaseSession):
    """In-memory session handing out FakeChannels"""

    def __init__(self, host: str = "fake", channel_kwargs: Optional[dict] = None,
                 open_error: Optional[Exception] = None, loop_error: Optional[Exception] = None,
                 close_error: Optional[Exception] = None):
        self.host = host
        self.channel_kwargs = channel_kwargs or {}
        self.open_error = open_error
        self.loop_error = loop_error
        self.close_error = close_error
        self.channels: List[FakeChannel] = []
        self.loop_passes = 0
        self.close_calls = 0
        self.is_closed = False
        self.shut_down = False
        self.released = False

    def open_channel(self):
        if self.open_error:
            raise self.open_error
        channel = FakeChannel(**self.channel_kwargs)
        self.channels.append(channel)
        return channel

    def _pass(self):
        self.loop_passes += 1
        for channel in self.channels:
            channel.deliver()
        if self.loop_error:
            raise self.loop_error

    def loop(self, predicate=None):
        if predicate is None:
            if any(not channel.delivered for channel in self.channels):
                self._pass()
            return
        while predicate():
            self._pass()

    @property
    def closed(self):
        return self.is_closed

    def close(self):
        self.close_calls += 1
        if self.close_error:
            raise self.close_error
        self.is_closed = True

    def shutdown(self):
        self.shut_down = True
        self.is_closed = True

    def release(self):
        self.released = True


class FakeSessionFactory:
    """Session factory recording every attempt

    ``failing`` maps an address to the exception raised on every attempt;
    ``fail_times`` maps an address to the number of retryable failures before success.
    """

    def __init__(self, **session_kwargs):
        self.session_kwargs = session_kwargs
        self.calls: List[tuple] = []
        self.failing: Dict[str, Exception] = {}
        self.fail_times: Dict[str, int] = {}
        self.sessions: List[FakeSession] = []

    def __call__(self, host, user, ssh_opts):
        self.calls.append((host, user, dict(ssh_opts)))
        if host in self.failing:
            raise self.failing[host]
        if self.fail_times.get(host, 0) > 0:
            self.fail_times[host] -= 1
            raise ConnectionResetError(f"Connection reset by {host}")
        session = FakeSession(host, **self.session_kwargs)
        self.sessions.append(session)
        return session

    @property
    def hosts(self) -> List[str]:
        return [call[0] for call in self.calls]


class FakeTransfer(BaseTransfer):
    """Transfer capability reporting two progress chunks per copy"""

    instances: List["FakeTransfer"] = []

    def __init__(self, session, error: Optional[Exception] = None):
        self.session = session
        self.error = error
        self.calls: List[tuple] = []
        FakeTransfer.instances.append(self)

    def _copy(self, direction, source, target, options, progress):
        self.calls.append((direction, source, target, dict(options)))
        if self.error:
            raise self.error
        if progress:
            progress("payload.bin", 16384, 20000)
            progress("payload.bin", 20000, 20000)

    def upload(self, source, target, options, progress=None):
        self._copy("upload", source, target, options, progress)

    def download(self, source, target, options, progress=None):
        self._copy("download", source, target, options, progress)


@pytest.fixture(autouse=True)
def no_sleep():
    """Backoff sleeps are real; never let them run in tests"""
    with patch("time.sleep") as sleep:
        yield sleep


@pytest.fixture(autouse=True)
def reset_fake_transfers():
    FakeTransfer.instances = []
    yield


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files"""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield tmpdir


@pytest.fixture
def identity():
    """Host identity with every address set"""
    return HostIdentity(vmhostname="vm-0142", ip="10.20.0.14", hostname="build-01.example.com",
                        user="root", ssh_options={"password": "secret"})


@pytest.fixture
def session_factory():
    return FakeSessionFactory()


@pytest.fixture
def connection(identity, session_factory):
    """SSHConnection wired to fake sessions and transfers"""
    return SSHConnection(
        identity,
        ["vmhostname", "ip", "hostname"],
        session_factory=session_factory,
        transfer_factory=FakeTransfer,
    )


@pytest.fixture
def local_file(temp_dir):
    """Small local file to upload"""
    path = os.path.join(temp_dir, "payload.bin")
    with open(path, "wb") as f:
        f.write(b"0" * 20000)
    return path


@pytest.fixture
def sample_config_data():
    """Sample configuration data for testing"""
    return {
        "host": {
            "vmhostname": "vm-0142",
            "ip": "10.20.0.14",
            "hostname": "build-01.example.com",
        },
        "user": "admin",
        "ssh": {
            "password": "test_password",
            "strict_host_key_checking": False,
        },
        "ssh_connection_preference": ["ip", "hostname"],
        "options": {
            "max_connection_tries": 4,
            "silent": True,
        },
    }
