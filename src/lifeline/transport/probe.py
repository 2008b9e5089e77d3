"""Detect silent session death with a no-op command"""

import time
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from lifeline.core.result import Result
from .backoff import RetryState
from .errors import is_retryable

# runs on every platform, windows included
PROBE_COMMAND = "echo echo"
PROBE_ATTEMPTS = 10
LOOP_PASSES = 3


class ConnectionProbe:
    """Repeatedly exercises the session until it fails or every attempt is used"""

    def __init__(self, connection, executor):
        """Initialize probe

        Args:
            connection: ConnectionManager owning the session
            executor: ChannelExecutor used to open probe channels
        """
        self.connection = connection
        self.executor = executor

    def wait_for_failure(self, options: Optional[Dict[str, Any]] = None,
                         stdout_callback: Optional[Callable[[Any], None]] = None,
                         stderr_callback: Optional[Callable[[Any], None]] = None) -> bool:
        """Wait for the connection to fail

        Args:
            options: pty (bool) and stdin (str) for the probe command
            stdout_callback: Receives probe output and the backoff progress dots
            stderr_callback: Receives probe stderr

        Returns:
            True if the connection failed, False if it survived every probe
        """
        options = options or {}
        logger = self.connection.logger
        host = self.connection.identity.name
        retry = RetryState()

        while retry.attempt <= PROBE_ATTEMPTS:
            result = Result(host, PROBE_COMMAND)
            logger.notify(
                f"Waiting for connection failure on {host} "
                f"(attempt {retry.attempt}, try again in {retry.wait} second(s))"
            )
            logger.debug(f"\n{host} {datetime.now().strftime('%H:%M:%S')}$ {PROBE_COMMAND}")
            try:
                self._probe_once(options, result, stdout_callback, stderr_callback)
            except Exception as e:
                if not is_retryable(e):
                    raise
                logger.debug(f"Connection on {host} failed as expected ({type(e).__name__} - {e})")
                self.connection.close()
                return True

            self._sleep_with_progress(retry.wait, stdout_callback)
            retry.advance()

        return False

    def _probe_once(self, options: Dict[str, Any], result: Result,
                    stdout_callback: Optional[Callable[[Any], None]],
                    stderr_callback: Optional[Callable[[Any], None]]) -> None:
        session = self.connection.session
        if session is None:
            raise ConnectionError(f"No ssh session to {self.connection.identity.name}")

        self.executor.open_command_channel(session, PROBE_COMMAND, options, result,
                                           stdout_callback, stderr_callback)
        passes = 0

        # an unbounded loop would block until the remote side goes away
        def keep_going() -> bool:
            nonlocal passes
            passes += 1
            return passes <= LOOP_PASSES

        session.loop(keep_going)

    @staticmethod
    def _sleep_with_progress(wait: int, stdout_callback: Optional[Callable[[Any], None]]) -> None:
        if stdout_callback:
            stdout_callback(f"sleep {wait} second(s): ")
        for _ in range(wait):
            time.sleep(1)
            if stdout_callback:
                stdout_callback(".")
        if stdout_callback:
            stdout_callback("\n")
