"""Host identity and the abstract session, channel and transfer capabilities"""

from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional


class HostIdentity:
    """Addresses naming the same physical or virtual target"""

    def __init__(self, vmhostname: Optional[str] = None, ip: Optional[str] = None,
                 hostname: Optional[str] = None, user: str = "root", port: int = 22,
                 ssh_options: Optional[dict] = None):
        """Initialize host identity

        Args:
            vmhostname: Name assigned by the hypervisor or cloud provider
            ip: IP address
            hostname: DNS hostname (can be SSH config alias)
            user: Username for authentication
            port: SSH port (default: 22)
            ssh_options: Optional SSH options passed to the session factory (key_file, password, etc.)
        """
        self.vmhostname = vmhostname
        self.ip = ip
        self.hostname = hostname
        self.user = user
        self.port = port
        self.ssh_options = ssh_options or {}

    @property
    def name(self) -> Optional[str]:
        """Best human-readable name for log lines"""
        return self.hostname or self.ip or self.vmhostname

    def address_for(self, method: str) -> Optional[str]:
        """Address for a connection method tag, None if unset

        Raises:
            KeyError: If the method tag is not a known identity field
        """
        return IDENTITY_FIELDS[method](self)

    def __repr__(self) -> str:
        return f"HostIdentity(vmhostname={self.vmhostname!r}, ip={self.ip!r}, hostname={self.hostname!r})"


IDENTITY_FIELDS: Dict[str, Callable[[HostIdentity], Optional[str]]] = {
    "vmhostname": lambda identity: identity.vmhostname,
    "ip": lambda identity: identity.ip,
    "hostname": lambda identity: identity.hostname,
}


class BaseChannel(ABC):
    """One logical command-execution stream multiplexed over a session"""

    @abstractmethod
    def request_pty(self, callback: Callable[["BaseChannel", bool], None]) -> None:
        """Request a pseudo-terminal, reporting success to ``callback``"""
        pass

    @abstractmethod
    def exec_command(self, command: str, callback: Callable[["BaseChannel", bool], None]) -> None:
        """Start ``command`` on this channel, reporting success to ``callback``"""
        pass

    @abstractmethod
    def on_data(self, callback: Callable[["BaseChannel", bytes], None]) -> None:
        """Register a handler for ordinary output"""
        pass

    @abstractmethod
    def on_extended_data(self, callback: Callable[["BaseChannel", int, bytes], None]) -> None:
        """Register a handler for extended output (type 1 is stderr)"""
        pass

    @abstractmethod
    def on_request(self, name: str, callback: Callable[["BaseChannel", Any], None]) -> None:
        """Register a handler for a channel request such as ``exit-status``"""
        pass

    @abstractmethod
    def send_data(self, data: bytes) -> None:
        pass

    @abstractmethod
    def flush(self) -> None:
        pass

    @abstractmethod
    def eof(self) -> None:
        pass


class BaseSession(ABC):
    """Live, authenticated connection able to open command channels"""

    @abstractmethod
    def open_channel(self) -> BaseChannel:
        pass

    @abstractmethod
    def loop(self, predicate: Optional[Callable[[], bool]] = None) -> None:
        """Process channel events

        Args:
            predicate: Keep processing while this returns True; without one,
                process until no channel is busy
        """
        pass

    @property
    @abstractmethod
    def closed(self) -> bool:
        pass

    @abstractmethod
    def close(self) -> None:
        pass

    @abstractmethod
    def shutdown(self) -> None:
        """Tear the connection down without a graceful close"""
        pass

    def release(self) -> None:
        """Free local resources of a session whose transport is already gone"""
        pass


ProgressCallback = Callable[[str, int, int], None]


class BaseTransfer(ABC):
    """Bulk copy over an established session"""

    @abstractmethod
    def upload(self, source: str, target: str, options: Dict[str, Any],
               progress: Optional[ProgressCallback] = None) -> None:
        pass

    @abstractmethod
    def download(self, source: str, target: str, options: Dict[str, Any],
                 progress: Optional[ProgressCallback] = None) -> None:
        pass
