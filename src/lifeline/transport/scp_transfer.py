"""SCP bulk copy over a paramiko session"""

import logging
from typing import Any, Dict, Optional

from scp import SCPClient

from .base import BaseTransfer, ProgressCallback

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 16384


class ScpTransfer(BaseTransfer):
    """Upload and download files with scp on an open session"""

    def __init__(self, session):
        """Initialize transfer

        Args:
            session: ParamikoSession whose transport carries the copy
        """
        transport = session.transport if session is not None else None
        if transport is None:
            raise ValueError("SCP transfer requires a connected session")
        self.transport = transport

    def _client(self, options: Dict[str, Any], progress: Optional[ProgressCallback]) -> SCPClient:
        def report(filename, size, sent):
            if isinstance(filename, bytes):
                filename = filename.decode("utf-8", errors="replace")
            progress(filename, sent, size)

        return SCPClient(
            self.transport,
            buff_size=options.get("chunk_size") or DEFAULT_CHUNK_SIZE,
            progress=report if progress else None,
        )

    def upload(self, source: str, target: str, options: Dict[str, Any],
               progress: Optional[ProgressCallback] = None) -> None:
        logger.debug(f"scp upload {source} -> {target} (recursive={options.get('recursive', False)})")
        with self._client(options, progress) as client:
            client.put(source, remote_path=target, recursive=bool(options.get("recursive")))

    def download(self, source: str, target: str, options: Dict[str, Any],
                 progress: Optional[ProgressCallback] = None) -> None:
        logger.debug(f"scp download {source} -> {target} (recursive={options.get('recursive', True)})")
        with self._client(options, progress) as client:
            client.get(source, local_path=target, recursive=bool(options.get("recursive", True)))
