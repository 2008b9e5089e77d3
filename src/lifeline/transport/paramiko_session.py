"""Session and channel adapters over paramiko"""

import logging
import os
import time
from typing import Any, Callable, Dict, List, Optional

import paramiko
from paramiko import SSHClient, AutoAddPolicy, RejectPolicy, WarningPolicy

from .base import BaseChannel, BaseSession

logger = logging.getLogger(__name__)

HOST_KEY_POLICIES = {
    "always": RejectPolicy,
    "accept_new": AutoAddPolicy,
    "never": WarningPolicy,
}


class ParamikoChannel(BaseChannel):
    """Event-handler view of a paramiko channel"""

    def __init__(self, channel: paramiko.Channel, chunk_size: int = 32768):
        self._channel = channel
        self.chunk_size = chunk_size
        self.finished = False
        self._data_handlers: List[Callable] = []
        self._extended_handlers: List[Callable] = []
        self._request_handlers: Dict[str, Callable] = {}
        self._pending: List[bytes] = []

    def _request(self, request: Callable[[], Any], callback: Callable[[BaseChannel, bool], None]) -> None:
        # paramiko raises on a refused request; a dead transport is re-raised, a refusal is reported
        try:
            request()
            success = True
        except paramiko.SSHException:
            transport = self._channel.get_transport()
            if transport is None or not transport.is_active():
                raise
            success = False
        callback(self, success)

    def request_pty(self, callback: Callable[[BaseChannel, bool], None]) -> None:
        self._request(self._channel.get_pty, callback)

    def exec_command(self, command: str, callback: Callable[[BaseChannel, bool], None]) -> None:
        self._request(lambda: self._channel.exec_command(command), callback)

    def on_data(self, callback: Callable[[BaseChannel, bytes], None]) -> None:
        self._data_handlers.append(callback)

    def on_extended_data(self, callback: Callable[[BaseChannel, int, bytes], None]) -> None:
        self._extended_handlers.append(callback)

    def on_request(self, name: str, callback: Callable[[BaseChannel, Any], None]) -> None:
        self._request_handlers[name] = callback

    def send_data(self, data: bytes) -> None:
        if isinstance(data, str):
            data = data.encode("utf-8")
        self._pending.append(data)

    def flush(self) -> None:
        while self._pending:
            self._channel.sendall(self._pending.pop(0))

    def eof(self) -> None:
        self.flush()
        self._channel.shutdown_write()

    def process(self) -> bool:
        """Dispatch buffered output and the exit status

        Returns:
            True while the channel is still busy
        """
        if self.finished:
            return False

        channel = self._channel
        # output sent before the exit status is already buffered once the status is seen
        exited = channel.exit_status_ready()
        self._drain()
        if exited:
            while (channel.recv_ready() or channel.recv_stderr_ready()) and self._drain():
                pass
            handler = self._request_handlers.get("exit-status")
            if handler:
                handler(self, channel.recv_exit_status())
            self._finish()
        elif channel.closed and not channel.recv_ready() and not channel.recv_stderr_ready():
            self._finish()

        return not self.finished

    def _drain(self) -> bool:
        """Dispatch everything buffered; True if any chunk was delivered"""
        channel = self._channel
        delivered = False
        while channel.recv_ready():
            data = channel.recv(self.chunk_size)
            if not data:
                break
            delivered = True
            for handler in self._data_handlers:
                handler(self, data)

        while channel.recv_stderr_ready():
            data = channel.recv_stderr(self.chunk_size)
            if not data:
                break
            delivered = True
            for handler in self._extended_handlers:
                handler(self, 1, data)
        return delivered

    def _finish(self) -> None:
        self.finished = True
        self._channel.close()


class ParamikoSession(BaseSession):
    """Live SSH connection backed by paramiko.SSHClient"""

    poll_interval = 0.05

    def __init__(self, client: SSHClient, host: str):
        self._client = client
        self.host = host
        self._channels: List[ParamikoChannel] = []

    @classmethod
    def start(cls, host: str, user: str, ssh_opts: Optional[Dict[str, Any]] = None) -> "ParamikoSession":
        """Open an authenticated session

        Args:
            host: Address to connect to
            user: Username for authentication
            ssh_opts: SSH options (port, key_file, password, timeout, ssh_config,
                verify_host_key, allow_agent, look_for_keys)

        Returns:
            Connected session
        """
        ssh_opts = dict(ssh_opts or {})
        connect_config = merge_ssh_config(host, user, ssh_opts)

        client = SSHClient()
        policy = HOST_KEY_POLICIES.get(ssh_opts.get("verify_host_key") or "accept_new", AutoAddPolicy)
        if policy is RejectPolicy:
            client.load_system_host_keys()
        client.set_missing_host_key_policy(policy())

        logger.debug(f"Connecting to {host} (resolved: {connect_config['hostname']})")
        try:
            client.connect(**connect_config)
        except Exception:
            client.close()
            raise
        logger.info(f"Connected to {host}")
        return cls(client, host)

    @property
    def transport(self) -> Optional[paramiko.Transport]:
        return self._client.get_transport()

    def open_channel(self) -> ParamikoChannel:
        transport = self.transport
        if transport is None or not transport.is_active():
            raise paramiko.SSHException(f"SSH session to {self.host} is not active")
        channel = ParamikoChannel(transport.open_session())
        self._channels.append(channel)
        return channel

    @property
    def busy(self) -> bool:
        return any(not channel.finished for channel in self._channels)

    def process(self) -> None:
        """Run one pass over the open channels"""
        transport = self.transport
        if self.busy and (transport is None or not transport.is_active()):
            error = transport.get_exception() if transport is not None else None
            raise error or paramiko.SSHException(f"SSH connection to {self.host} was lost")

        self._channels = [channel for channel in self._channels if channel.process()]
        if self._channels:
            time.sleep(self.poll_interval)

    def loop(self, predicate: Optional[Callable[[], bool]] = None) -> None:
        while True:
            if predicate is not None:
                if not predicate():
                    return
            elif not self.busy:
                return
            self.process()

    @property
    def closed(self) -> bool:
        transport = self.transport
        return transport is None or not transport.is_active()

    def close(self) -> None:
        self._client.close()
        self._channels = []

    def release(self) -> None:
        self._client.close()
        self._channels = []

    def shutdown(self) -> None:
        transport = self.transport
        if transport is not None and transport.sock is not None:
            transport.sock.close()
        self._client.close()
        self._channels = []


def load_ssh_config(ssh_config_path: Optional[str] = None) -> Optional[paramiko.SSHConfig]:
    """Load SSH config file with auto-detection

    Args:
        ssh_config_path: Path to SSH config file (None = auto-detect ~/.ssh/config)

    Returns:
        Parsed config, or None if missing or unreadable
    """
    if ssh_config_path is None:
        ssh_config_path = os.path.expanduser("~/.ssh/config")
    else:
        ssh_config_path = os.path.expanduser(ssh_config_path)

    if not os.path.exists(ssh_config_path):
        logger.debug(f"SSH config not found at {ssh_config_path}")
        return None

    try:
        parser = paramiko.SSHConfig.from_path(ssh_config_path)
        logger.debug(f"Loaded SSH config from {ssh_config_path}")
        return parser
    except Exception as e:
        logger.warning(f"Failed to load SSH config from {ssh_config_path}: {e}")
        return None


def merge_ssh_config(host: str, user: str, ssh_opts: Dict[str, Any]) -> Dict[str, Any]:
    """Merge SSH config with precedence: explicit ssh options > host/user > SSH config > defaults

    Args:
        host: Address to connect to
        user: Username for authentication
        ssh_opts: Explicit SSH options

    Returns:
        Merged connection parameters for paramiko SSHClient.connect()
    """
    config: Dict[str, Any] = {"hostname": host, "port": 22, "username": user}

    # SSH config file (lowest precedence)
    parser = load_ssh_config(ssh_opts.get("ssh_config"))
    if parser:
        ssh_config = parser.lookup(host)
        config["hostname"] = ssh_config.get("hostname", host)
        if "port" in ssh_config:
            config["port"] = int(ssh_config["port"])
        if user is None and "user" in ssh_config:
            config["username"] = ssh_config["user"]

        identity_files = ssh_config.get("identityfile", [])
        if identity_files:
            config["key_filename"] = identity_files

        if "proxyjump" in ssh_config:
            config["sock"] = paramiko.ProxyCommand(f"ssh -W %h:%p {ssh_config['proxyjump']}")
        elif "proxycommand" in ssh_config:
            config["sock"] = paramiko.ProxyCommand(ssh_config["proxycommand"])

    # Explicit options (highest precedence)
    if "port" in ssh_opts:
        config["port"] = int(ssh_opts["port"])
    if ssh_opts.get("key_file"):
        expanded_key = os.path.expanduser(ssh_opts["key_file"])
        if os.path.exists(expanded_key):
            config["key_filename"] = expanded_key
        else:
            logger.warning(f"SSH key file not found: {expanded_key}, will use password auth if available")
            config.pop("key_filename", None)
    if ssh_opts.get("password"):
        config["password"] = ssh_opts["password"]

    config["timeout"] = ssh_opts.get("timeout", 10)
    config["allow_agent"] = ssh_opts.get("allow_agent", True)
    config["look_for_keys"] = ssh_opts.get("look_for_keys", True)

    auth_methods = []
    if config.get("key_filename"):
        auth_methods.append(f"key: {config['key_filename']}")
    if config["allow_agent"]:
        auth_methods.append("SSH agent")
    if config["look_for_keys"]:
        auth_methods.append("~/.ssh/ keys")
    if config.get("password"):
        auth_methods.append("password")

    if auth_methods:
        logger.debug(f"Auth methods for {config['hostname']} (in priority order): {' → '.join(auth_methods)}")
    else:
        logger.warning(f"No authentication methods configured for {config['hostname']}!")

    return config
