"""Resilient SSH connection to a single host"""

from typing import Any, Callable, Dict, List, Optional

from lifeline.core.log import ConnectionLogger
from lifeline.core.result import Result
from .base import BaseSession, HostIdentity
from .connection import ConnectionManager, SessionFactory
from .executor import ChannelExecutor, OutputCallback
from .probe import ConnectionProbe
from .transfer import TransferFactory, Transferer


class SSHConnection:
    """Command execution and file transfer over a self-healing SSH session"""

    def __init__(self, identity: HostIdentity, preference: Optional[List[str]] = None,
                 options: Optional[Dict[str, Any]] = None, logger: Optional[ConnectionLogger] = None,
                 session_factory: Optional[SessionFactory] = None,
                 transfer_factory: Optional[TransferFactory] = None):
        """Initialize SSH connection

        Args:
            identity: Addresses of the target host (vmhostname, ip, hostname)
            preference: Order in which identity methods are tried
            options: Default options (max_connection_tries, silent)
            logger: Diagnostic sink holding the last result
            session_factory: Opens a session (default: ParamikoSession.start)
            transfer_factory: Builds the copy capability for a session (default: ScpTransfer)
        """
        self.manager = ConnectionManager(identity, preference, options, logger, session_factory)
        self.executor = ChannelExecutor(self.manager)
        self.probe = ConnectionProbe(self.manager, self.executor)
        self.transferer = Transferer(self.manager, self.execute, transfer_factory)

    @classmethod
    def open(cls, identity: HostIdentity, preference: Optional[List[str]] = None,
             options: Optional[Dict[str, Any]] = None, **kwargs) -> "SSHConnection":
        """Create a connection and connect it straight away"""
        connection = cls(identity, preference, options, **kwargs)
        connection.connect()
        return connection

    @property
    def identity(self) -> HostIdentity:
        return self.manager.identity

    @property
    def logger(self) -> ConnectionLogger:
        return self.manager.logger

    @property
    def preference(self) -> List[str]:
        return self.manager.preference

    @property
    def session(self) -> Optional[BaseSession]:
        return self.manager.session

    @property
    def connected(self) -> bool:
        return self.manager.connected

    def connect(self, options: Optional[Dict[str, Any]] = None) -> BaseSession:
        return self.manager.connect(options)

    def close(self) -> None:
        self.manager.close()

    def execute(self, command: str, options: Optional[Dict[str, Any]] = None,
                stdout_callback: Optional[OutputCallback] = None,
                stderr_callback: Optional[OutputCallback] = None) -> Result:
        """Execute a command on the host, connecting first if needed

        Args:
            command: Command to run
            options: max_connection_tries, silent, pty, stdin
            stdout_callback: Receives stdout chunks as they arrive
            stderr_callback: Receives stderr chunks (default: stdout_callback)

        Returns:
            Finalized result
        """
        if stderr_callback is None:
            stderr_callback = stdout_callback
        session = self.manager.connect(options)
        return self.executor.run(session, command, options, stdout_callback, stderr_callback)

    def wait_for_connection_failure(self, options: Optional[Dict[str, Any]] = None,
                                    stdout_callback: Optional[Callable[[Any], None]] = None,
                                    stderr_callback: Optional[Callable[[Any], None]] = None) -> bool:
        """Probe the session until it dies; True if failure was observed"""
        if stderr_callback is None:
            stderr_callback = stdout_callback
        return self.probe.wait_for_failure(options, stdout_callback, stderr_callback)

    def scp_to(self, source: str, target: str, options: Optional[Dict[str, Any]] = None) -> Result:
        return self.transferer.scp_to(source, target, options)

    def scp_from(self, source: str, target: str, options: Optional[Dict[str, Any]] = None) -> Result:
        return self.transferer.scp_from(source, target, options)

    def __enter__(self) -> "SSHConnection":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if self.manager.session is not None:
            self.close()

    def __repr__(self) -> str:
        return f"SSHConnection({self.identity!r}, connected={self.connected})"
