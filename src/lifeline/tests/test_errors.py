"""Tests for the retryable error taxonomy"""

import socket

import paramiko
import pytest

from lifeline.transport.errors import (
    ConnectionFailure,
    ProtocolError,
    ResultFinalizedError,
    is_retryable,
)


class TestIsRetryable:
    """Test classification of transport failures"""

    @pytest.mark.parametrize("exc", [
        socket.gaierror(-2, "Name or service not known"),
        socket.timeout("timed out"),
        TimeoutError("timed out"),
        ConnectionRefusedError(111, "Connection refused"),
        ConnectionResetError(104, "Connection reset by peer"),
        OSError(113, "No route to host"),
        IOError("broken pipe"),
        EOFError(),
        paramiko.SSHException("Error reading SSH protocol banner"),
        paramiko.AuthenticationException("Authentication failed."),
        paramiko.ChannelException(2, "Connect failed"),
    ])
    def test_transport_failures_are_retryable(self, exc):
        assert is_retryable(exc) is True

    @pytest.mark.parametrize("exc", [
        ProtocolError("pty denied"),
        ConnectionFailure("build-01", ["ip"]),
        ResultFinalizedError("done"),
        ValueError("bad"),
        KeyError("missing"),
    ])
    def test_other_errors_are_not_retryable(self, exc):
        assert is_retryable(exc) is False


class TestConnectionFailure:
    def test_carries_host_and_methods(self):
        error = ConnectionFailure("build-01", ["vmhostname", "hostname"])

        assert error.host == "build-01"
        assert error.methods == ["vmhostname", "hostname"]
        assert "build-01" in str(error)
        assert "vmhostname, hostname" in str(error)
