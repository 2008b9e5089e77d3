"""Per-invocation record of a remote command or transfer"""

import logging
from typing import Iterable, List, Optional, Tuple, Union

from lifeline.transport.errors import ResultFinalizedError

logger = logging.getLogger(__name__)

Data = Union[bytes, str]


def _to_bytes(data: Data) -> bytes:
    if isinstance(data, str):
        return data.encode("utf-8")
    return bytes(data)


class Result:
    """Accumulates stdout, stderr, combined output and exit code of one call"""

    def __init__(self, host: Optional[str], cmd: Union[str, Tuple[str, str]]):
        """Initialize an empty result

        Args:
            host: Host the command runs on
            cmd: Command string, or (source, target) pair for transfers
        """
        self.host = host
        self.cmd = cmd
        self.exit_code: Optional[int] = None
        self.lines: List[str] = []
        self.finalized = False
        self._stdout = bytearray()
        self._stderr = bytearray()
        self._output = bytearray()

    def _check_open(self) -> None:
        if self.finalized:
            raise ResultFinalizedError(f"Result for {self.cmd!r} on {self.host} is already finalized")

    def write_stdout(self, data: Data) -> None:
        """Append to stdout and the combined output"""
        self._check_open()
        raw = _to_bytes(data)
        self._stdout += raw
        self._output += raw

    def write_stderr(self, data: Data) -> None:
        """Append to stderr and the combined output"""
        self._check_open()
        raw = _to_bytes(data)
        self._stderr += raw
        self._output += raw

    @property
    def stdout(self) -> str:
        return self._stdout.decode("utf-8", errors="replace")

    @property
    def stderr(self) -> str:
        return self._stderr.decode("utf-8", errors="replace")

    @property
    def output(self) -> str:
        return self._output.decode("utf-8", errors="replace")

    def finalize(self) -> "Result":
        """Lock the result; must be called exactly once

        Returns:
            The finalized result
        """
        self._check_open()
        if self.exit_code is None:
            self.exit_code = -1
        self.lines = self.output.split("\n")
        self._stdout = bytes(self._stdout)
        self._stderr = bytes(self._stderr)
        self._output = bytes(self._output)
        self.finalized = True
        return self

    @property
    def success(self) -> bool:
        return self.exit_code == 0

    def exit_code_in(self, codes: Iterable[int]) -> bool:
        return self.exit_code in set(codes)

    def formatted_output(self, limit: int = 10) -> str:
        """Last ``limit`` lines of the combined output"""
        lines = self.output.rstrip("\n").split("\n")
        return "\n".join(lines[-limit:])

    def log(self, log: Optional[logging.Logger] = None) -> None:
        """Debug-log the exit code and the tail of the output"""
        log = log or logger
        log.debug(f"Exited: {self.exit_code}")
        if self.output:
            log.debug(f"Last {min(10, len(self.lines))} lines of output were:\n{self.formatted_output()}")

    def __repr__(self) -> str:
        return f"Result(host={self.host!r}, cmd={self.cmd!r}, exit_code={self.exit_code!r})"
