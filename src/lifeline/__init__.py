"""lifeline - resilient SSH command execution and file transfer"""

from lifeline.core.result import Result
from lifeline.transport.base import HostIdentity
from lifeline.transport.errors import ConnectionFailure, ProtocolError
from lifeline.transport.ssh import SSHConnection

__version__ = "0.1.0"

__all__ = ["SSHConnection", "HostIdentity", "Result", "ConnectionFailure", "ProtocolError"]
