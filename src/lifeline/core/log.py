"""Per-connection logging sink"""

import logging
from typing import Any, MutableMapping, Optional, Tuple

NOTIFY = 25
logging.addLevelName(NOTIFY, "NOTIFY")


class ConnectionLogger(logging.LoggerAdapter):
    """Logger adapter that tags messages with the host and remembers the last result"""

    def __init__(self, logger: logging.Logger, host: Optional[str] = None):
        super().__init__(logger, {"host": host})
        self.last_result = None

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> Tuple[Any, MutableMapping[str, Any]]:
        host = self.extra.get("host")
        if host:
            msg = f"[{host}] {msg}"
        return msg, kwargs

    def notify(self, msg: Any, *args: Any, **kwargs: Any) -> None:
        """Log a user-facing progress message"""
        self.log(NOTIFY, msg, *args, **kwargs)
