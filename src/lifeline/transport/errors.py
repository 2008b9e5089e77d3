"""Error taxonomy for SSH sessions"""

import socket
from typing import List, Optional

import paramiko


# Transient network and protocol failures that are eligible for backoff and retry.
# OSError already covers EHOSTDOWN, EHOSTUNREACH, ENETUNREACH and generic I/O errors;
# the narrower classes are listed so the taxonomy reads the way it is logged.
RETRYABLE_EXCEPTIONS = (
    socket.gaierror,
    socket.timeout,
    TimeoutError,
    ConnectionRefusedError,
    ConnectionResetError,
    OSError,
    EOFError,
    paramiko.SSHException,
)


class LifelineError(Exception):
    """Base class for lifeline errors"""


class ProtocolError(LifelineError):
    """Fatal protocol-level refusal (pty denied, exec rejected), never retried"""


class ConnectionFailure(LifelineError):
    """Every configured identity method was exhausted without a session"""

    def __init__(self, host: Optional[str], methods: List[str]):
        self.host = host
        self.methods = list(methods)
        super().__init__(
            f"Cannot connect to {host}, attempted {', '.join(self.methods) or 'no methods'}"
        )


class ResultFinalizedError(LifelineError):
    """A result was written to or finalized after it had been finalized"""


class ConfigError(LifelineError):
    """Configuration file could not be loaded"""


def is_retryable(exc: BaseException) -> bool:
    """Classify an exception against the retryable taxonomy

    Args:
        exc: Exception raised by the session or transfer layer

    Returns:
        True if the failure is transient and may be retried
    """
    if isinstance(exc, LifelineError):
        return False
    return isinstance(exc, RETRYABLE_EXCEPTIONS)
