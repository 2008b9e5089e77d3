"""File copy to and from the host over the established session"""

import os
from typing import Any, Callable, Dict, Optional

from lifeline.core.result import Result
from .base import BaseTransfer
from .scp_transfer import DEFAULT_CHUNK_SIZE, ScpTransfer

TransferFactory = Callable[[Any], BaseTransfer]


class Transferer:
    """Copies files with the transfer capability, closing the session on failure

    Transfer errors never propagate: they are logged and the connection is
    closed, so the next operation observes a disconnected session. The
    transfer layer has no remote exit status, so the exit code is always 0
    and a failed copy is only visible through ``connected`` or the next call.
    """

    def __init__(self, connection, execute: Callable[..., Result],
                 transfer_factory: Optional[TransferFactory] = None):
        """Initialize transferer

        Args:
            connection: ConnectionManager owning the session
            execute: Runs a remote command, used to expand %VAR% paths
            transfer_factory: Builds the transfer capability for a session (default: ScpTransfer)
        """
        self.connection = connection
        self.execute = execute
        self.transfer_factory = transfer_factory or ScpTransfer

    def scp_to(self, source: str, target: str, options: Optional[Dict[str, Any]] = None) -> Result:
        """Copy a local path to the host

        Args:
            source: Local file or directory
            target: Remote path
            options: recursive (default: whether source is a directory), chunk_size (default 16384)

        Returns:
            Finalized result with exit code 0
        """
        local_opts = dict(options or {})
        if local_opts.get("recursive") is None:
            local_opts["recursive"] = os.path.isdir(source)
        local_opts["chunk_size"] = local_opts.get("chunk_size") or DEFAULT_CHUNK_SIZE

        host = self.connection.identity.name
        result = Result(host, (source, target))
        result.write_stdout("\n")

        try:
            target = self._expand_remote_path(target)
            transfer = self.transfer_factory(self.connection.session)
            transfer.upload(source, target, local_opts, self._progress_for(result))
        except Exception as e:
            self._abandon(e)

        result.write_stdout(f"  SCP'ed file {source} to {host}:{target}")
        result.exit_code = 0
        return result.finalize()

    def scp_from(self, source: str, target: str, options: Optional[Dict[str, Any]] = None) -> Result:
        """Copy a remote path from the host

        Args:
            source: Remote file or directory
            target: Local path
            options: recursive (default True), chunk_size (default 16384)

        Returns:
            Finalized result with exit code 0
        """
        local_opts = dict(options or {})
        if local_opts.get("recursive") is None:
            local_opts["recursive"] = True
        local_opts["chunk_size"] = local_opts.get("chunk_size") or DEFAULT_CHUNK_SIZE

        host = self.connection.identity.name
        result = Result(host, (source, target))
        result.write_stdout("\n")

        try:
            source = self._expand_remote_path(source)
            transfer = self.transfer_factory(self.connection.session)
            transfer.download(source, target, local_opts, self._progress_for(result))
        except Exception as e:
            self._abandon(e)

        result.write_stdout(f"  SCP'ed file {host}:{source} to {target}")
        result.exit_code = 0
        return result.finalize()

    def _expand_remote_path(self, path: str) -> str:
        # a % is most likely an unexpanded windows environment variable
        if "%" not in path:
            return path
        return self.execute(f'echo "{path}"').output.strip().replace('"', "")

    @staticmethod
    def _progress_for(result: Result) -> Callable[[str, int, int], None]:
        def progress(name: str, sent: int, total: int) -> None:
            result.write_stdout("\tcopying %s: %10d/%d\n" % (name, sent, total))

        return progress

    def _abandon(self, error: Exception) -> None:
        self.connection.logger.warning(
            f"{type(error).__name__} error in scp'ing. Forcing the connection to close, which should raise an error."
        )
        self.connection.close()
