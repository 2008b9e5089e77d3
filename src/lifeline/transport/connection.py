"""Connection lifecycle: identity fallback, bounded retry and teardown"""

import logging
from typing import Any, Callable, Dict, List, Optional

from lifeline.core.log import ConnectionLogger
from .backoff import RetryState
from .base import BaseSession, HostIdentity
from .errors import ConnectionFailure, is_retryable
from .paramiko_session import ParamikoSession


SUPPORTED_CONNECTION_METHODS = ("ip", "vmhostname", "hostname")
DEFAULT_CONNECTION_PREFERENCE = ["vmhostname", "ip", "hostname"]
DEFAULT_MAX_CONNECTION_TRIES = 11

SessionFactory = Callable[[str, str, Dict[str, Any]], BaseSession]


def translate_host_key_checking(ssh_opts: Dict[str, Any]) -> Dict[str, Any]:
    """Map ``strict_host_key_checking`` onto ``verify_host_key``

    An explicit ``verify_host_key`` wins. The input dict is not modified.
    """
    ssh_opts = dict(ssh_opts)
    if "strict_host_key_checking" in ssh_opts:
        strict = ssh_opts.pop("strict_host_key_checking")
        if not ssh_opts.get("verify_host_key"):
            ssh_opts["verify_host_key"] = "always" if strict else "never"
    return ssh_opts


def _redact(ssh_opts: Dict[str, Any]) -> Dict[str, Any]:
    return {key: ("****" if key == "password" else value) for key, value in ssh_opts.items()}


class ConnectionManager:
    """Owns the session to one host and the policy for (re)establishing it"""

    def __init__(self, identity: HostIdentity, preference: Optional[List[str]] = None,
                 options: Optional[Dict[str, Any]] = None, logger: Optional[ConnectionLogger] = None,
                 session_factory: Optional[SessionFactory] = None):
        """Initialize connection manager

        Args:
            identity: Addresses of the target host
            preference: Ordered connection method tags; unsupported tags are
                removed from this list for the lifetime of the manager
            options: Default options (max_connection_tries, silent)
            logger: Diagnostic sink (default: module logger tagged with the host)
            session_factory: Callable opening a session, ParamikoSession.start by default
        """
        self.identity = identity
        if preference is None:
            preference = DEFAULT_CONNECTION_PREFERENCE
        self.preference = list(preference)
        self.options = dict(options or {})
        self.logger = logger or ConnectionLogger(logging.getLogger(__name__), identity.name)
        self.session_factory = session_factory or ParamikoSession.start
        self.session: Optional[BaseSession] = None

    @property
    def connected(self) -> bool:
        return self.session is not None and not self.session.closed

    def connect(self, options: Optional[Dict[str, Any]] = None) -> BaseSession:
        """Connect to the host, creating a new session only if none exists

        Args:
            options: Per-call options overriding the manager defaults

        Returns:
            The live session

        Raises:
            ConnectionFailure: If every configured method failed
        """
        if self.session is not None:
            return self.session

        options = {**self.options, **(options or {})}
        silent = options.get("silent", False)
        attempted: List[str] = []
        methods = list(self.preference)
        while self.session is None and methods:
            method = methods.pop(0)
            if method not in SUPPORTED_CONNECTION_METHODS:
                if not silent:
                    self.logger.warning(
                        f"{method} is not a supported method to SSH to host, trying next available method."
                    )
                self.preference.remove(method)
                continue

            address = self.identity.address_for(method)
            if address is None:
                if not silent:
                    self.logger.warning(f"Skipping {method} method to ssh to host as its value is not set.")
                continue

            attempted.append(method)
            ssh_opts = {"port": self.identity.port, **self.identity.ssh_options}
            self.session = self.connect_block(address, self.identity.user, ssh_opts, options)

        if self.session is None:
            self.logger.error(f"Failed to connect to {self.identity.name}, attempted {', '.join(attempted)}")
            raise ConnectionFailure(self.identity.name, attempted)
        return self.session

    def connect_block(self, host: str, user: str, ssh_opts: Dict[str, Any],
                      options: Dict[str, Any]) -> Optional[BaseSession]:
        """Open a session to one address with bounded retry

        Args:
            host: Address to connect to
            user: Username to log in as
            ssh_opts: Options passed to the session factory
            options: max_connection_tries (default 11) and silent (default False)

        Returns:
            The session, or None once max_connection_tries attempts have failed
        """
        max_connection_tries = options.get("max_connection_tries") or DEFAULT_MAX_CONNECTION_TRIES
        silent = options.get("silent", False)
        ssh_opts = translate_host_key_checking(ssh_opts)
        retry = RetryState()

        while True:
            self.logger.debug(f"Attempting ssh connection to {host}, user: {user}, opts: {_redact(ssh_opts)}")
            try:
                return self.session_factory(host, user, ssh_opts)
            except Exception as e:
                if not is_retryable(e):
                    raise
                if retry.attempt >= max_connection_tries:
                    if not silent:
                        self.logger.warning(f"Failed to connect to {host}, after {retry.attempt} attempts")
                    return None
                if not silent:
                    self.logger.warning(f"Try {retry.attempt} -- Host {host} unreachable: {type(e).__name__} - {e}")
                    self.logger.warning(f"Trying again in {retry.wait} seconds")
                retry.sleep()
                retry.advance()

    def close(self) -> None:
        """Close the session; the session reference is always cleared"""
        try:
            if self.session is not None and not self.session.closed:
                self.session.close()
            else:
                self.logger.warning("ssh close: connection is already closed, no action needed")
                if self.session is not None:
                    self.session.release()
        except Exception as e:
            if not is_retryable(e):
                self.logger.error(
                    f"ssh close threw unexpected error: {type(e).__name__} - {e}. Shutting down, and re-raising"
                )
                self.session.shutdown()
                raise
            self.logger.warning(f"Attempted ssh close (caught {type(e).__name__} - {e}).")
        finally:
            self.session = None
            self.logger.debug(f"ssh connection to {self.identity.name} has been terminated")
