"""Run commands on channels of an established session"""

from typing import Any, Callable, Dict, Optional

from lifeline.core.result import Result
from .base import BaseChannel, BaseSession
from .errors import ProtocolError, is_retryable

OutputCallback = Callable[[bytes], None]


class ChannelExecutor:
    """Opens one channel per command and wires its output into a Result"""

    def __init__(self, connection):
        """Initialize executor

        Args:
            connection: ConnectionManager owning the session, closed on post-exec failure
        """
        self.connection = connection

    @property
    def logger(self):
        return self.connection.logger

    @property
    def host(self) -> Optional[str]:
        return self.connection.identity.name

    def run(self, session: BaseSession, command: str, options: Optional[Dict[str, Any]] = None,
            stdout_callback: Optional[OutputCallback] = None,
            stderr_callback: Optional[OutputCallback] = None) -> Result:
        """Run a command and wait for its channel to finish

        Args:
            session: Live session
            command: Command to run
            options: pty (bool) and stdin (str)
            stdout_callback: Called with each stdout chunk before it is buffered
            stderr_callback: Called with each stderr chunk before it is buffered

        Returns:
            Finalized result; partial if the connection died mid-command

        Raises:
            ProtocolError: If the pty or the exec request is refused
        """
        options = options or {}
        result = Result(self.host, command)
        self.open_command_channel(session, command, options, result, stdout_callback, stderr_callback)

        try:
            session.loop()
        except Exception as e:
            if not is_retryable(e):
                raise
            # the exec request succeeded, so the connection died while the command was running
            self.logger.warning(
                f"ssh channel on {self.host} received exception post command execution {type(e).__name__} - {e}"
            )
            self.connection.close()

        result.finalize()
        self.logger.last_result = result
        return result

    def open_command_channel(self, session: BaseSession, command: str, options: Dict[str, Any],
                             result: Result, stdout_callback: Optional[OutputCallback] = None,
                             stderr_callback: Optional[OutputCallback] = None) -> BaseChannel:
        """Open a channel, start the command and register its handlers"""
        channel = session.open_channel()
        if options.get("pty"):
            self.request_terminal_for(channel, command)

        def on_exec(terminal: BaseChannel, success: bool) -> None:
            if not success:
                raise ProtocolError(f"FAILED: to execute command on a new channel on {self.host}")
            self.register_stdout_for(terminal, result, stdout_callback)
            self.register_stderr_for(terminal, result, stderr_callback)
            self.register_exit_code_for(terminal, result)
            if options.get("stdin") is not None:
                self.process_stdin_for(terminal, options["stdin"])

        channel.exec_command(command, on_exec)
        return channel

    def request_terminal_for(self, channel: BaseChannel, command: str) -> None:
        def on_pty(_channel: BaseChannel, success: bool) -> None:
            if not success:
                raise ProtocolError(
                    f"FAILED: could not allocate a pty when requested on {self.host} for {command!r}"
                )
            self.logger.debug(f"Allocated a PTY on {self.host} for {command!r}")

        channel.request_pty(on_pty)

    @staticmethod
    def register_stdout_for(channel: BaseChannel, result: Result,
                            callback: Optional[OutputCallback] = None) -> None:
        def on_data(_channel: BaseChannel, data: bytes) -> None:
            if callback:
                callback(data)
            result.write_stdout(data)

        channel.on_data(on_data)

    @staticmethod
    def register_stderr_for(channel: BaseChannel, result: Result,
                            callback: Optional[OutputCallback] = None) -> None:
        def on_extended_data(_channel: BaseChannel, data_type: int, data: bytes) -> None:
            if data_type != 1:
                return
            if callback:
                callback(data)
            result.write_stderr(data)

        channel.on_extended_data(on_extended_data)

    @staticmethod
    def register_exit_code_for(channel: BaseChannel, result: Result) -> None:
        def on_exit_status(_channel: BaseChannel, payload: Any) -> None:
            result.exit_code = int(payload)

        channel.on_request("exit-status", on_exit_status)

    @staticmethod
    def process_stdin_for(channel: BaseChannel, stdin: Any) -> None:
        # send, force to packets, then eof: many remote commands only act once input is closed
        channel.send_data(str(stdin).encode("utf-8"))
        channel.flush()
        channel.eof()
